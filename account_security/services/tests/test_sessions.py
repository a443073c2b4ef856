"""Tests for :mod:`account_security.services.sessions`."""

from unittest import TestCase, mock
from datetime import datetime, timedelta

import jwt
from pytz import UTC
from redis.exceptions import ConnectionError, RedisError

from account_security.domain import Account, Session
from account_security.exceptions import InvalidToken, UnknownSession, \
    SessionCreationFailed, SessionDeletionFailed
from account_security.services import sessions


def _mock_exceptions(mock_redis):
    mock_redis.exceptions.ConnectionError = ConnectionError
    mock_redis.exceptions.RedisError = RedisError


class TestSessionStoreWithMocks(TestCase):
    """The session store mints sessions in a key-value store."""

    def setUp(self):
        self.account = Account('42', 'the@user.com', 'hash')

    @mock.patch('account_security.services.sessions.redis')
    def test_create(self, mock_redis):
        """Accept an :class:`.Account` and return a :class:`.Session`."""
        mock_redis_connection = mock.MagicMock()
        mock_redis.StrictRedis.return_value = mock_redis_connection
        store = sessions.SessionStore('localhost', 6379, 0, 'foosecret',
                                      cluster=False)
        session = store.create(self.account, '127.0.0.1')
        self.assertIsInstance(session, Session)
        self.assertTrue(bool(session.session_id))
        self.assertEqual(session.account_id, '42')
        self.assertEqual(len(session.nonce), 8)
        self.assertFalse(session.persistent)
        self.assertEqual(mock_redis_connection.set.call_count, 1)
        _, kwargs = mock_redis_connection.set.call_args
        self.assertEqual(kwargs['ex'], 7200)

    @mock.patch('account_security.services.sessions.redis')
    def test_cluster(self, mock_redis):
        """Connect to a Redis cluster by default."""
        sessions.SessionStore('redis', 7000, 0, 'foosecret', token='t')
        mock_redis.RedisCluster.assert_called_once_with(
            host='redis', port=7000, password='t'
        )

    @mock.patch('account_security.services.sessions.redis')
    def test_delete_by_id(self, mock_redis):
        """Delete a session from the datastore."""
        mock_redis_connection = mock.MagicMock()
        mock_redis_connection.delete.return_value = 1
        mock_redis.StrictRedis.return_value = mock_redis_connection
        store = sessions.SessionStore('localhost', 6379, 0, 'foosecret',
                                      cluster=False)
        store.delete_by_id('fookey')
        mock_redis_connection.delete.assert_called_once_with('fookey')

    @mock.patch('account_security.services.sessions.redis')
    def test_connection_failed(self, mock_redis):
        """:class:`.SessionCreationFailed` is raised when creation fails."""
        _mock_exceptions(mock_redis)
        mock_redis_connection = mock.MagicMock()
        mock_redis_connection.set.side_effect = ConnectionError
        mock_redis.StrictRedis.return_value = mock_redis_connection
        store = sessions.SessionStore('localhost', 6379, 0, 'foosecret',
                                      cluster=False)
        with self.assertRaises(SessionCreationFailed):
            store.create(self.account, '127.0.0.1')

    @mock.patch('account_security.services.sessions.redis')
    def test_deletion_failed(self, mock_redis):
        """:class:`.SessionDeletionFailed` is raised when deletion fails."""
        _mock_exceptions(mock_redis)
        mock_redis_connection = mock.MagicMock()
        mock_redis_connection.delete.side_effect = RedisError
        mock_redis.StrictRedis.return_value = mock_redis_connection
        store = sessions.SessionStore('localhost', 6379, 0, 'foosecret',
                                      cluster=False)
        with self.assertRaises(SessionDeletionFailed):
            store.delete_by_id('fookey')


class TestSessionStoreWithFakeRedis(TestCase):
    """Round trips through an in-memory Redis."""

    def setUp(self):
        self.store = sessions.SessionStore('localhost', 6379, 0, 'foosecret',
                                           fake=True)
        self.store.r.flushall()
        self.account = Account('42', 'the@user.com', 'hash')

    def test_load_by_cookie(self):
        session = self.store.create(self.account, '10.0.0.1', persistent=True)
        cookie = self.store.generate_cookie(session)
        loaded = self.store.load(cookie)
        self.assertEqual(loaded.session_id, session.session_id)
        self.assertEqual(loaded.account_id, '42')
        self.assertEqual(loaded.start_time, session.start_time)
        self.assertTrue(loaded.persistent)

    def test_delete(self):
        session = self.store.create(self.account, '10.0.0.1')
        cookie = self.store.generate_cookie(session)
        self.store.delete(cookie)
        with self.assertRaises(UnknownSession):
            self.store.load(cookie)
        with self.assertRaises(UnknownSession):
            self.store.delete_by_id(session.session_id)

    def test_not_a_cookie(self):
        with self.assertRaises(InvalidToken):
            self.store.load('notatoken')

    def test_cookie_with_bad_secret(self):
        session = self.store.create(self.account, '10.0.0.1')
        claims = {
            'account_id': '42',
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': session.end_time.isoformat()
        }
        forged = jwt.encode(claims, 'nottherightsecret', algorithm='HS256')
        with self.assertRaises(InvalidToken):
            self.store.load(forged)

    def test_wrong_nonce(self):
        session = self.store.create(self.account, '10.0.0.1')
        cookie = self.store.generate_cookie(session._replace(nonce='1'))
        with self.assertRaises(InvalidToken):
            self.store.load(cookie)

    def test_expired_cookie(self):
        session = self.store.create(self.account, '10.0.0.1')
        expired = session._replace(
            end_time=datetime.now(tz=UTC) - timedelta(seconds=1)
        )
        with self.assertRaises(InvalidToken):
            self.store.load(self.store.generate_cookie(expired))

    def test_missing_claims(self):
        cookie = jwt.encode({'session_id': 'foo'}, 'foosecret',
                            algorithm='HS256')
        with self.assertRaises(InvalidToken):
            self.store.load(cookie)
