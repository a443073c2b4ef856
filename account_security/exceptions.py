"""Exceptions."""


class InvalidToken(ValueError):
    """A token or cookie could not be accepted."""


class Malformed(InvalidToken):
    """The token is structurally invalid and cannot be decoded."""


class PurposeMismatch(InvalidToken):
    """The token was minted for a different flow."""


class InvalidSignature(InvalidToken):
    """The token signature does not match its contents; forged?"""


class Expired(InvalidToken):
    """The token is older than the maximum age for its purpose."""


class AccountNotFound(RuntimeError):
    """No account matches the provided identifier or e-mail address."""


class AccountExists(RuntimeError):
    """An account with the provided e-mail address already exists."""


class AccountLocked(RuntimeError):
    """Too many failed attempts; the account is in a backoff period."""


class PasswordMismatch(RuntimeError):
    """Password is not correct."""


class CaptchaInvalid(RuntimeError):
    """The captcha response did not check out."""


class ValidationError(ValueError):
    """User input failed validation."""

    def __init__(self, field: str, reason: str) -> None:
        super(ValidationError, self).__init__(f'{field}: {reason}')
        self.field = field
        self.reason = reason


class Unavailable(RuntimeError):
    """The account store could not be reached."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""
