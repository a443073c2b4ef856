"""
Internal service API for the distributed session store.

Used to create, load and delete authenticated sessions. Session data are
held in Redis as a JWT keyed by session ID; the session cookie is a second
JWT carrying just enough to find the session and check it against a nonce.
"""

from typing import Any, Optional
from datetime import datetime, timedelta
import logging
import secrets
import uuid

import dateutil.parser
import jwt
import redis
from pytz import UTC

from .. import domain
from ..exceptions import SessionCreationFailed, SessionDeletionFailed, \
    UnknownSession, InvalidToken

logger = logging.getLogger(__name__)


def _generate_nonce(length: int = 8) -> str:
    return ''.join([str(secrets.randbelow(10)) for _ in range(length)])


class SessionStore(object):
    """
    Manages a connection to Redis.

    In fact, the StrictRedis instance is thread safe and connections are
    attached at the time a command is executed. This class simply provides a
    container for configuration.
    """

    def __init__(self, host: str, port: int, db: int, secret: str,
                 duration: int = 7200, token: Optional[str] = None,
                 cluster: bool = True, fake: bool = False) -> None:
        """Open the connection to Redis."""
        self.r: Any
        if fake:
            import fakeredis
            logger.debug('Using fake Redis')
            self.r = fakeredis.FakeStrictRedis()
        elif cluster:
            logger.debug('New Redis cluster connection at %s, port %s',
                         host, port)
            self.r = redis.RedisCluster(host=host, port=port,
                                        password=token)
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db,
                                       password=token)
        self._secret = secret
        self._duration = duration

    def create(self, account: domain.Account, ip_address: Optional[str],
               persistent: bool = False) -> domain.Session:
        """
        Create a new session.

        Parameters
        ----------
        account : :class:`domain.Account`
        ip_address : str
        persistent : bool
            Set when the session is resumed from a remember-me cookie.

        Returns
        -------
        :class:`.Session`

        Raises
        ------
        :class:`SessionCreationFailed`

        """
        session_id = str(uuid.uuid4())
        start_time = datetime.now(tz=UTC)
        session = domain.Session(
            session_id=session_id,
            account_id=account.account_id,
            start_time=start_time,
            end_time=start_time + timedelta(seconds=self._duration),
            ip_address=ip_address,
            nonce=_generate_nonce(),
            persistent=persistent
        )
        try:
            self.r.set(session_id, self._encode(domain.to_dict(session)),
                       ex=self._duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except redis.exceptions.RedisError as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        return session

    def generate_cookie(self, session: domain.Session) -> str:
        """Generate a cookie from a :class:`domain.Session`."""
        end_time = session.end_time or session.start_time
        return self._pack_cookie({
            'account_id': session.account_id,
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': end_time.isoformat()
        })

    def delete(self, cookie: str) -> None:
        """Delete the session referenced by a session cookie."""
        cookie_data = self._unpack_cookie(cookie)
        self.delete_by_id(cookie_data['session_id'])

    def delete_by_id(self, session_id: str) -> None:
        """
        Delete a session in the key-value store by ID.

        Raises
        ------
        :class:`UnknownSession`
            There is no such session (it may already have been deleted).
        :class:`SessionDeletionFailed`

        """
        try:
            deleted = self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except redis.exceptions.RedisError as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e
        if not deleted:
            raise UnknownSession(f'No such session: {session_id}')

    def load(self, cookie: str) -> domain.Session:
        """Load a session using a session cookie."""
        try:
            cookie_data = self._unpack_cookie(cookie)
            expires = dateutil.parser.parse(cookie_data['expires'])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Token payload malformed') from e

        if expires <= datetime.now(tz=UTC):
            raise InvalidToken('Session has expired')

        session = self.load_by_id(cookie_data['session_id'])
        if session.expired:
            raise InvalidToken('Session has expired')
        if cookie_data.get('nonce') != session.nonce \
                or cookie_data.get('account_id') != session.account_id:
            raise InvalidToken('Invalid token; likely a forgery')
        return session

    def load_by_id(self, session_id: str) -> domain.Session:
        """Get session data by session ID."""
        session_jwt = self.r.get(session_id)
        if not session_jwt:
            logger.debug('No such session: %s', session_id)
            raise UnknownSession(f'Failed to find session {session_id}')
        return self._decode(session_jwt)

    def _encode(self, session_data: dict) -> str:
        return jwt.encode(session_data, self._secret, algorithm='HS256')

    def _decode(self, session_jwt: Any) -> domain.Session:
        if isinstance(session_jwt, bytes):
            session_jwt = session_jwt.decode('utf-8')
        try:
            session: domain.Session = domain.from_dict(
                domain.Session,
                jwt.decode(session_jwt, self._secret, algorithms=['HS256'])
            )
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Invalid or corrupted session token') from e
        return session

    def _unpack_cookie(self, cookie: str) -> dict:
        try:
            data = dict(jwt.decode(cookie, self._secret,
                                   algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Session cookie is malformed') from e
        return data

    def _pack_cookie(self, cookie_data: dict) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')
