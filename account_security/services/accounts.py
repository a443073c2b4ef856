"""Provide an account store backed by a relational database."""

from typing import Generator, Optional
from contextlib import contextmanager
from datetime import datetime
import logging
import uuid

from pytz import UTC
from retry import retry
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from .. import domain
from ..exceptions import AccountExists, AccountNotFound, Unavailable
from ..util import normalize_email
from .models import Base, DBAccount

logger = logging.getLogger(__name__)


def _to_domain(db_account: DBAccount) -> domain.Account:
    return domain.Account(
        account_id=db_account.account_id,
        email=db_account.email,
        password_hash=db_account.password_hash,
        status=db_account.status
    )


class SQLAlchemyAccountStore(object):
    """Reads and writes :class:`.domain.Account` rows."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine)

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Context manager for database transaction."""
        session = self._sessionmaker()
        try:
            yield session
            # The caller may have explicitly committed already. We only want
            # to commit here if there is anything remaining that is not
            # flushed.
            if session.new or session.dirty or session.deleted:
                session.commit()
        except OperationalError as e:
            logger.error('Database unavailable, rolling back: %s', e)
            session.rollback()
            raise Unavailable('Account store is unavailable') from e
        except Exception as e:
            logger.error('Commit failed, rolling back: %s', str(e))
            session.rollback()
            raise
        finally:
            session.close()

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def find_by_email(self, email: str) -> Optional[domain.Account]:
        """Get the account registered with ``email``, if there is one."""
        with self.transaction() as session:
            db_account = session.query(DBAccount) \
                .filter(DBAccount.email == normalize_email(email)) \
                .first()
            return _to_domain(db_account) if db_account else None

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def find_by_id(self, account_id: str) -> Optional[domain.Account]:
        """Get an account by its identifier, if it exists."""
        with self.transaction() as session:
            db_account = session.query(DBAccount) \
                .filter(DBAccount.account_id == account_id) \
                .first()
            return _to_domain(db_account) if db_account else None

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def create(self, email: str, password_hash: str) -> domain.Account:
        """
        Create a new active account.

        Raises
        ------
        :class:`AccountExists`
            The address is already registered.

        """
        db_account = DBAccount(
            account_id=str(uuid.uuid4()),
            email=normalize_email(email),
            password_hash=password_hash,
            status=domain.Account.ACTIVE,
            created=datetime.now(tz=UTC)
        )
        try:
            with self.transaction() as session:
                session.add(db_account)
                session.commit()
                account = _to_domain(db_account)
        except IntegrityError as e:
            raise AccountExists('Email address is already registered') from e
        logger.debug('Created account %s', account.account_id)
        return account

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def update_password_hash(self, account_id: str,
                             password_hash: str) -> domain.Account:
        """
        Replace the stored password hash for an account.

        Raises
        ------
        :class:`AccountNotFound`

        """
        with self.transaction() as session:
            db_account = session.query(DBAccount) \
                .filter(DBAccount.account_id == account_id) \
                .first()
            if db_account is None:
                raise AccountNotFound(f'No account {account_id}')
            db_account.password_hash = password_hash
            session.add(db_account)
            session.commit()
            return _to_domain(db_account)

    @retry(Unavailable, tries=3, delay=0.5, backoff=2)
    def set_status(self, account_id: str, status: str) -> domain.Account:
        """Enable or disable an account."""
        with self.transaction() as session:
            db_account = session.query(DBAccount) \
                .filter(DBAccount.account_id == account_id) \
                .first()
            if db_account is None:
                raise AccountNotFound(f'No account {account_id}')
            db_account.status = status
            session.commit()
            return _to_domain(db_account)
