"""Helpers for testing the account flows."""

from typing import Optional, Tuple
from datetime import datetime, timedelta
from unittest import mock

from pytz import UTC
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from werkzeug.datastructures import MultiDict

from account_security.attacks import AttackMonitor
from account_security.attempts import AttemptTracker
from account_security.domain import Account
from account_security.flows import FlowEngine, FlowSettings
from account_security.passwords import BcryptHasher
from account_security.services.accounts import SQLAlchemyAccountStore
from account_security.services.sessions import SessionStore
from account_security.tokens import SecretKeys, TokenCodec

PASSWORD = 'correct horse 42'
IP = '10.1.2.3'


class FakeClock(object):
    """A clock that only moves when told to."""

    def __init__(self, t: Optional[datetime] = None) -> None:
        self.t = t or datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.t

    def advance(self, seconds: int) -> datetime:
        self.t += timedelta(seconds=seconds)
        return self.t


def new_engine(**settings) -> FlowEngine:
    """Build a :class:`.FlowEngine` around in-memory services."""
    db = create_engine('sqlite://', connect_args={'check_same_thread': False},
                       poolclass=StaticPool)
    accounts = SQLAlchemyAccountStore(db)
    accounts.create_all()
    captcha = mock.MagicMock()
    captcha.verify.return_value = True
    return FlowEngine(
        codec=TokenCodec(SecretKeys(['foosecret'])),
        tracker=AttemptTracker(),
        monitor=AttackMonitor(),
        accounts=accounts,
        captcha=captcha,
        mailer=mock.MagicMock(),
        hasher=BcryptHasher(rounds=4),
        sessions=SessionStore('localhost', 6379, 0, 'barsecret', fake=True),
        clock=FakeClock(),
        settings=FlowSettings(cookie_secure=False, **settings)
    )


def add_account(engine: FlowEngine, email: str = 'jane@university.edu',
                password: str = PASSWORD) -> Account:
    """Create an account directly in the store."""
    return engine.context.accounts.create(
        email, engine.context.hasher.hash(password)
    )


def sent_token(engine: FlowEngine) -> str:
    """The token in the most recent message handed to the mailer."""
    _, _, params = engine.context.mailer.send.call_args[0]
    return params['token']


def email_form(email: str) -> MultiDict:
    return MultiDict({'email': email, 'captcha_value': 'ABC123',
                      'captcha_token': 'captchatoken'})


def password_form(token: str, password: str = PASSWORD,
                  password2: Optional[str] = None) -> MultiDict:
    return MultiDict({'token': token, 'password': password,
                      'password2': password if password2 is None
                      else password2})


def login_form(email: str, password: str = PASSWORD,
               remember_me: bool = False) -> MultiDict:
    params = {'email': email, 'password': password}
    if remember_me:
        params['remember_me'] = 'y'
    return MultiDict(params)


def login(engine: FlowEngine, email: str, password: str = PASSWORD,
          remember_me: bool = False) -> Tuple[dict, int, dict]:
    return engine.login.submit(login_form(email, password, remember_me), IP)
