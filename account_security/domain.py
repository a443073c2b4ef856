"""Defines account and session concepts used by the account flows."""

from typing import Any, NamedTuple, Optional, get_type_hints
from datetime import datetime
import hashlib

import dateutil.parser
from pytz import UTC


class Purpose(object):
    """Known action token purposes. Each one scopes tokens to one flow."""

    REGISTER = 'register'
    REMEMBER = 'remember'
    RECOVER = 'recover'
    UNLOCK = 'unlock'
    LOGOUT = 'logout'

    ALL = (REGISTER, REMEMBER, RECOVER, UNLOCK, LOGOUT)


class Account(NamedTuple):
    """Represents a user account, as held by the account store."""

    ACTIVE = 'active'  # type: ignore
    DISABLED = 'disabled'  # type: ignore

    account_id: str
    """Unique identifier for the account."""

    email: str
    """The account's e-mail address, normalized to lower case."""

    password_hash: str
    """Output of the (slow, adaptive) password hash function."""

    status: str = 'active'
    """Either :attr:`Account.ACTIVE` or :attr:`Account.DISABLED`."""

    @property
    def active(self) -> bool:
        """Whether the account may log in."""
        return self.status == self.ACTIVE

    @property
    def password_digest(self) -> str:
        """Digest of the current password hash, embedded in action tokens."""
        return password_digest(self.password_hash)


class Session(NamedTuple):
    """Represents an authenticated session."""

    session_id: str
    """Unique identifier for the session."""

    account_id: str
    """The account for which the session was created."""

    start_time: datetime
    """The ISO-8601 datetime when the session was created."""

    end_time: Optional[datetime] = None
    """The ISO-8601 datetime when the session ends."""

    ip_address: Optional[str] = None
    """The IP address of the client for which the session was created."""

    nonce: Optional[str] = None
    """A pseudo-random nonce generated when the session was created."""

    persistent: bool = False
    """Whether the session was created from a remember-me cookie."""

    @property
    def expired(self) -> bool:
        """Expired if the current time is later than :attr:`.end_time`."""
        return bool(self.end_time is not None
                    and datetime.now(tz=UTC) >= self.end_time)

    @property
    def expires(self) -> Optional[int]:
        """
        Number of seconds until the session expires.

        If the session is already expired, returns 0.
        """
        if self.end_time is None:
            return None
        duration = (self.end_time - datetime.now(tz=UTC)).total_seconds()
        return max(int(duration), 0)


class CaptchaResponse(NamedTuple):
    """What the client sent back in answer to a captcha challenge."""

    token: str
    value: str
    ip_address: str = ''


def password_digest(password_hash: str) -> str:
    """SHA-256 hex digest of a stored password hash."""
    return hashlib.sha256(password_hash.encode('utf-8')).hexdigest()


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    Datetimes are cast to ISO-8601 strings so that the result can be
    serialized as JSON.
    """
    if not hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return {}
    data = {}
    for key, value in obj._asdict().items():  # type: ignore
        if isinstance(value, datetime):
            value = value.isoformat()
        data[key] = value
    return data


def from_dict(cls: type, data: dict) -> Any:
    """
    Generate a NamedTuple instance from a dict.

    This is the inverse of :func:`to_dict`. Unknown keys are ignored.
    """
    _data = {}
    for field, field_type in get_type_hints(cls).items():
        if field not in data:
            continue
        value = data[field]
        if type(value) is str and (field_type is datetime
                                   or field_type == Optional[datetime]):
            value = dateutil.parser.parse(value)
        _data[field] = value
    return cls(**_data)
