"""Collaborators consumed by the account flows."""

from typing import Any, Mapping, Optional, Protocol
from datetime import datetime

from .domain import Account, CaptchaResponse, Session


class AccountStore(Protocol):
    """Reads and writes accounts. Never says more than found/not found."""

    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    def find_by_id(self, account_id: str) -> Optional[Account]:
        ...

    def create(self, email: str, password_hash: str) -> Account:
        """Raises :class:`.AccountExists` if the address is taken."""
        ...

    def update_password_hash(self, account_id: str,
                             password_hash: str) -> Account:
        """Raises :class:`.AccountNotFound` if there is no such account."""
        ...


class CaptchaVerifier(Protocol):
    def verify(self, response: CaptchaResponse) -> bool:
        ...


class EmailSender(Protocol):
    """Best-effort delivery; failures are logged, not raised."""

    def send(self, address: str, template_id: str,
             params: Mapping[str, Any]) -> None:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str:
        ...

    def verify(self, password: str, password_hash: str) -> bool:
        ...


class SessionStore(Protocol):
    def create(self, account: Account, ip_address: Optional[str],
               persistent: bool = False) -> Session:
        ...

    def generate_cookie(self, session: Session) -> str:
        ...

    def delete_by_id(self, session_id: str) -> None:
        ...
