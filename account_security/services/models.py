"""Account store database models."""

from sqlalchemy import Column, DateTime, String, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DBAccount(Base):  # type: ignore
    """
    Account table.

    +---------------+--------------+------+-----+---------+
    | Field         | Type         | Null | Key | Default |
    +---------------+--------------+------+-----+---------+
    | account_id    | varchar(36)  | NO   | PRI | NULL    |
    | email         | varchar(255) | NO   | UNI | NULL    |
    | password_hash | varchar(255) | NO   |     | NULL    |
    | status        | varchar(16)  | NO   |     | active  |
    | created       | datetime     | NO   |     | NULL    |
    +---------------+--------------+------+-----+---------+
    """

    __tablename__ = 'accounts'

    account_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False,
                    server_default=text("'active'"))
    created = Column(DateTime, nullable=False)
