"""
Stateless captcha.

This module provides a captcha that does not require storing anything.

When the user visits a form for which a captcha is required, a new captcha
token can be generated using :meth:`StatelessCaptcha.new`. The token
contains the challenge answer, as well as an expiration. The token is signed
using a server-side secret and the IP address of the client. Rendering the
challenge as an image is left to the presentation layer, which can get the
answer back out of the token with :meth:`StatelessCaptcha.unpack`.

When the user enters an answer to the challenge, the answer can be checked
against the token using :meth:`StatelessCaptcha.check`. If the token is
expired, or cannot be decoded for some reason (e.g. forgery, change of IP
address), an :class:`InvalidCaptchaToken` exception is raised. If the token
can be interpreted but the value is incorrect, an
:class:`InvalidCaptchaValue` exception is raised.
:meth:`StatelessCaptcha.verify` wraps this up for the account flows.
"""

from typing import Any, Mapping
from datetime import datetime, timedelta
import hmac
import logging
import random
import string

import dateutil.parser
import jwt
from pytz import UTC

from ..domain import CaptchaResponse

logger = logging.getLogger(__name__)


class InvalidCaptchaToken(ValueError):
    """A token was passed that is either expired or corrupted."""


class InvalidCaptchaValue(ValueError):
    """The passed value did not match the associated captcha token."""


def _generate_random_string(N: int = 6) -> str:
    """
    Generate some random characers to use in the captcha.

    Parameters
    ----------
    N : int
        Number of characters to generate.

    Returns
    -------
    str
        A pseudo-random sequence of uppercase letters and numbers, ``N``
        characters in length.

    """
    rng = random.SystemRandom()
    return ''.join(rng.choices(string.ascii_uppercase + string.digits, k=N))


class StatelessCaptcha(object):
    """Captcha challenges carried in signed tokens."""

    def __init__(self, secret: str, expires: int = 300) -> None:
        self._secret = secret
        self.expires = expires

    def _key(self, ip_address: str) -> str:
        """Bind the signing secret to the client address."""
        return ':'.join([self._secret, ip_address])

    def new(self, ip_address: str) -> str:
        """
        Generate a captcha token.

        Parameters
        ----------
        ip_address : str
            The client IP address, also used to sign the token.

        Returns
        -------
        str
            A captcha token, which contains a captcha challenge and
            expiration.

        """
        expires = datetime.now(tz=UTC) + timedelta(seconds=self.expires)
        claims = {
            'value': _generate_random_string(),
            'expires': expires.isoformat()
        }
        return jwt.encode(claims, self._key(ip_address), algorithm='HS256')

    def unpack(self, token: str, ip_address: str) -> str:
        """
        Unpack a captcha token, and get the target value.

        Raises
        ------
        :class:`InvalidCaptchaToken`
            Raised if the token is malformed, expired, or the IP address does
            not match the one used to generate the token.

        """
        try:
            claims: Mapping[str, Any] = jwt.decode(token,
                                                   self._key(ip_address),
                                                   algorithms=['HS256'])
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidCaptchaToken('Could not decode token') from e
        try:
            expires = dateutil.parser.parse(claims['expires'])
            value: str = claims['value']
            if not isinstance(value, str):
                raise TypeError('Captcha value must be a string')
        except (KeyError, TypeError, ValueError) as e:
            logger.debug('captcha token invalid: %s', e)
            raise InvalidCaptchaToken('Malformed content') from e
        if expires <= datetime.now(tz=UTC):
            logger.debug('captcha token expired: %s', claims['expires'])
            raise InvalidCaptchaToken('Expired token')
        return value

    def check(self, token: str, value: str, ip_address: str) -> None:
        """
        Evaluate whether a value matches a captcha token.

        Raises
        ------
        :class:`InvalidCaptchaValue`
            If the passed ``value`` does not match the challenge contained in
            the token, this exception is raised.
        :class:`InvalidCaptchaToken`
            Raised if the token is malformed, expired, or the IP address does
            not match the one used to generate the token.

        """
        target = self.unpack(token, ip_address)
        answer = (value or '').strip().upper().encode('utf-8')
        if not hmac.compare_digest(answer, target.encode('utf-8')):
            logger.debug('incorrect value for this captcha')
            raise InvalidCaptchaValue('Incorrect value for this captcha')

    def verify(self, response: CaptchaResponse) -> bool:
        """Check a captcha response submitted with an account form."""
        try:
            self.check(response.token, response.value, response.ip_address)
        except (InvalidCaptchaToken, InvalidCaptchaValue) as e:
            logger.debug('Captcha failed: %s', e)
            return False
        return True
