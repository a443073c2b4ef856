"""Password hashing."""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class BcryptHasher(object):
    """Slow, adaptive password hashing with bcrypt."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Generate a salted hash of ``password``."""
        if not isinstance(password, str) or len(password) == 0:
            raise ValueError('Password must be a non-empty string')
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify(self, password: str, password_hash: str) -> bool:
        """Check ``password`` against a hash produced by :meth:`hash`."""
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'),
                                  password_hash.encode('utf-8'))
        except ValueError as e:
            logger.error('Stored password hash is not usable: %s', e)
            return False
