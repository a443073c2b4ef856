"""
Signed action tokens.

An action token carries a subject identifier and a few purpose-specific
payload fields from one step of an account flow to a later one, via an
e-mail link, a hidden form field or a cookie. Nothing is stored server-side:
the token is authenticated with an HMAC over a hash of its canonical
encoding. Fields travel in the clear; only integrity is protected.

Wire form::

    base64url(json([subject_id, [[key, value], ...], issued_at, purpose]))
    + "." + base64url(signature)

The purpose is mixed into the signature, so a token minted for one flow is
never accepted by another.
"""

from typing import List, Mapping, Optional, Sequence, Tuple
from base64 import b64decode, urlsafe_b64encode
from datetime import datetime
import binascii
import hashlib
import hmac
import json
import logging

from . import util
from .domain import Purpose
from .exceptions import Expired, InvalidSignature, Malformed, PurposeMismatch

logger = logging.getLogger(__name__)

CLOCK_SKEW = 60
"""Seconds by which a token may appear to be issued in the future."""

Payload = Mapping[str, str]


class SecretKeys(object):
    """Supplies token signing keys; the first key signs, all keys verify."""

    def __init__(self, keys: Sequence[str]) -> None:
        keys = [key for key in keys if key]
        if not keys:
            raise ValueError('At least one token secret is required')
        self._keys = [key.encode('utf-8') for key in keys]

    @classmethod
    def from_string(cls, value: str) -> 'SecretKeys':
        """Parse a comma-separated list of keys."""
        return cls([key.strip() for key in value.split(',')])

    @property
    def signing_key(self) -> bytes:
        """Key used to sign new tokens."""
        return self._keys[0]

    @property
    def verification_keys(self) -> List[bytes]:
        """Keys accepted when verifying a token."""
        return list(self._keys)


def _b64encode(data: bytes) -> str:
    return urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def _b64decode(data: str) -> bytes:
    """Strict inverse of :func:`_b64encode`; one encoding per byte string."""
    padded = data + '=' * (-len(data) % 4)
    decoded = b64decode(padded.encode('ascii'), altchars=b'-_', validate=True)
    if _b64encode(decoded) != data:
        raise ValueError('Non-canonical base64 encoding')
    return decoded


def _canonical(purpose: str, subject_id: str,
               fields: Sequence[Tuple[str, str]], issued_at: int) -> bytes:
    """Length-prefixed encoding of every signed value, in order."""
    parts = [purpose, subject_id]
    for key, value in fields:
        parts.extend([key, value])
    parts.append(str(issued_at))
    encoded = b''
    for part in parts:
        raw = part.encode('utf-8')
        encoded += len(raw).to_bytes(4, 'big') + raw
    return encoded


class TokenCodec(object):
    """Issues and verifies purpose-scoped action tokens."""

    def __init__(self, keys: SecretKeys) -> None:
        self._keys = keys

    def _sign(self, key: bytes, purpose: str, subject_id: str,
              fields: Sequence[Tuple[str, str]], issued_at: int) -> bytes:
        digest = hashlib.sha256(
            _canonical(purpose, subject_id, fields, issued_at)
        ).digest()
        return hmac.new(key, digest, hashlib.sha256).digest()

    def issue(self, purpose: str, subject_id: str, payload: Payload,
              now: datetime) -> str:
        """
        Generate a signed token.

        Parameters
        ----------
        purpose : str
            One of :attr:`.Purpose.ALL`.
        subject_id : str
            The account, e-mail address or session the token pertains to.
        payload : dict
            Purpose-specific string fields. Order is preserved.
        now : datetime
            Issuance time.

        Returns
        -------
        str

        """
        if purpose not in Purpose.ALL:
            raise ValueError(f'Unknown token purpose: {purpose}')
        fields = [(str(key), str(value)) for key, value in payload.items()]
        issued_at = util.epoch(now)
        signature = self._sign(self._keys.signing_key, purpose, subject_id,
                               fields, issued_at)
        body = json.dumps([subject_id, fields, issued_at, purpose],
                          separators=(',', ':'))
        return _b64encode(body.encode('utf-8')) + '.' + _b64encode(signature)

    def verify(self, token: Optional[str], expected_purpose: str,
               max_age: int, now: datetime) -> Tuple[str, dict]:
        """
        Verify a token and get its subject and payload.

        Checks run in a fixed order: structure, purpose, signature, age. No
        decoded field is trusted until the signature has been checked.

        Returns
        -------
        str
            The subject identifier.
        dict
            The payload fields.

        Raises
        ------
        :class:`.Malformed`
        :class:`.PurposeMismatch`
        :class:`.InvalidSignature`
        :class:`.Expired`

        """
        subject_id, fields, issued_at, purpose, signature = \
            self._decode(token)

        if purpose != expected_purpose:
            raise PurposeMismatch(f'Expected a {expected_purpose} token')

        for key in self._keys.verification_keys:
            expected = self._sign(key, purpose, subject_id, fields, issued_at)
            if hmac.compare_digest(expected, signature):
                break
        else:
            raise InvalidSignature('Invalid token signature; forged?')

        age = util.epoch(now) - issued_at
        if age > max_age:
            logger.debug('%s token expired %i seconds ago', purpose,
                         age - max_age)
            raise Expired('Token has expired')
        if age < -CLOCK_SKEW:
            raise Expired('Token is not yet valid')
        return subject_id, dict(fields)

    def _decode(self, token: Optional[str]) \
            -> Tuple[str, List[Tuple[str, str]], int, str, bytes]:
        if not token or not isinstance(token, str):
            raise Malformed('Empty token')
        try:
            body_part, signature_part = token.split('.')
            body = json.loads(_b64decode(body_part).decode('utf-8'))
            signature = _b64decode(signature_part)
        except (ValueError, binascii.Error, RecursionError) as e:
            raise Malformed('Token cannot be decoded') from e

        if not isinstance(body, list) or len(body) != 4:
            raise Malformed('Unexpected token structure')
        subject_id, raw_fields, issued_at, purpose = body
        if not isinstance(subject_id, str) or not isinstance(purpose, str) \
                or type(issued_at) is not int \
                or not isinstance(raw_fields, list):
            raise Malformed('Unexpected token field types')
        fields = []
        for pair in raw_fields:
            if not isinstance(pair, list) or len(pair) != 2 \
                    or not all(isinstance(part, str) for part in pair):
                raise Malformed('Unexpected payload structure')
            fields.append((pair[0], pair[1]))
        if len(signature) != hashlib.sha256().digest_size:
            raise Malformed('Unexpected signature length')

        # JSON escapes can smuggle in lone surrogates, which cannot be signed.
        try:
            for part in [subject_id, purpose] + [s for f in fields for s in f]:
                part.encode('utf-8')
        except UnicodeError as e:
            raise Malformed('Token fields are not valid text') from e
        return subject_id, fields, issued_at, purpose, signature
