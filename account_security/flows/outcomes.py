"""
What the user is told when an account flow step fails.

Internal checks raise precise exceptions (see :mod:`.exceptions`).
:func:`public_message` is the one place where those are turned into text
for the user. Anything that could reveal the state of an account collapses
into a single message per flow that lists every plausible cause. Input
errors and captcha failures say nothing about accounts and are reported as
they are.
"""

import logging

from ..exceptions import AccountExists, AccountLocked, AccountNotFound, \
    CaptchaInvalid, InvalidToken, Malformed, PasswordMismatch, \
    UnknownSession, ValidationError

logger = logging.getLogger(__name__)

REGISTER_FAILED = (
    'We could not complete your registration. The activation link may have'
    ' expired or been used already, or an account with this e-mail address'
    ' may already exist. You can request a new link, log in, or reset your'
    ' password.'
)
LOGIN_FAILED = (
    'Login failed. The e-mail address may not be registered, the password'
    ' may be incorrect, or the account may be temporarily locked after too'
    ' many failed attempts. Please wait a moment and try again, reset your'
    ' password, or request an unlock link.'
)
RECOVER_FAILED = (
    'We could not reset your password. The link may have expired, been used'
    ' already, or been replaced by a newer one. Please request a new link.'
)
UNLOCK_FAILED = (
    'We could not unlock the account. The link may have expired, been used'
    ' already, or been replaced by a newer one. Please request a new link.'
)
LOGOUT_FAILED = 'Your logout request has expired. Please try again.'

CAPTCHA_FAILED = 'Please try the captcha again.'
MALFORMED_LINK = 'This link is incomplete or damaged. Please copy the' \
                 ' whole link from the e-mail into your browser.'

EMAIL_SENT = (
    'If the address can be used for this request, we have sent a message to'
    ' it. Please follow the link in the message to continue.'
)

GENERIC = {
    'register': REGISTER_FAILED,
    'login': LOGIN_FAILED,
    'recover': RECOVER_FAILED,
    'unlock': UNLOCK_FAILED,
    'logout': LOGOUT_FAILED,
}

LINK_FLOWS = ('register', 'recover', 'unlock')
"""Flows whose tokens arrive as links in an e-mail."""

SENSITIVE = (AccountNotFound, AccountExists, AccountLocked, PasswordMismatch,
             InvalidToken, UnknownSession)


def is_sensitive(error: Exception) -> bool:
    """Whether telling the user about ``error`` could reveal account state."""
    return isinstance(error, SENSITIVE) and not isinstance(error, Malformed)


def public_message(flow: str, error: Exception) -> str:
    """
    Map a failure in ``flow`` to the message shown to the user.

    The precise failure is logged here, and only here.

    Parameters
    ----------
    flow : str
        One of the keys of :data:`GENERIC`.
    error : :class:`Exception`
        The failure raised by an internal check.

    Returns
    -------
    str

    """
    logger.debug('%s step failed: %s: %s', flow, type(error).__name__, error)
    if isinstance(error, ValidationError):
        return error.reason
    if isinstance(error, CaptchaInvalid):
        return CAPTCHA_FAILED
    if isinstance(error, Malformed) and flow in LINK_FLOWS:
        return MALFORMED_LINK
    if isinstance(error, SENSITIVE):
        return GENERIC[flow]
    raise TypeError(f'No public message for {type(error).__name__}')
