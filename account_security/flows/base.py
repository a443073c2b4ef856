"""Shared machinery for the account flows."""

from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple
from datetime import datetime
from http import HTTPStatus
import hmac
import logging

from werkzeug.exceptions import InternalServerError
from wtforms import Form

from .. import domain
from ..attacks import AttackMonitor
from ..attempts import AttemptTracker
from ..domain import Account, CaptchaResponse, Session
from ..exceptions import AccountNotFound, CaptchaInvalid, Expired, \
    Malformed, SessionCreationFailed
from ..interfaces import AccountStore, CaptchaVerifier, Clock, EmailSender, \
    PasswordHasher, SessionStore
from ..tokens import TokenCodec
from . import outcomes
from .forms import CaptchaForm, validation_errors

logger = logging.getLogger(__name__)

ResponseData = Tuple[dict, int, dict]


class FlowSettings(NamedTuple):
    """Token lifetimes and cookie parameters."""

    register_max_age: int = 86400
    remember_max_age: int = 30 * 86400
    recover_max_age: int = 3600
    unlock_max_age: int = 3600
    logout_max_age: int = 600
    session_cookie_name: str = 'ACCOUNT_SESSION'
    remember_cookie_name: str = 'ACCOUNT_REMEMBER'
    cookie_secure: bool = True


class FlowContext(NamedTuple):
    """The service objects shared by all flows."""

    codec: TokenCodec
    tracker: AttemptTracker
    monitor: AttackMonitor
    accounts: AccountStore
    captcha: CaptchaVerifier
    mailer: EmailSender
    hasher: PasswordHasher
    sessions: SessionStore
    clock: Clock
    settings: FlowSettings = FlowSettings()


def cookie(value: str, max_age: int, secure: bool = True) -> Dict[str, Any]:
    """Cookie value and attributes, as keyword arguments for ``set_cookie``."""
    return {'value': value, 'max_age': max_age, 'secure': secure,
            'httponly': True, 'samesite': 'Lax'}


class Flow(object):
    """Base class for a multi-step account flow."""

    name = ''

    def __init__(self, context: FlowContext) -> None:
        self.context = context

    @property
    def settings(self) -> FlowSettings:
        return self.context.settings

    def now(self) -> datetime:
        return self.context.clock.now()

    def _failure(self, data: dict, error: Exception,
                 code: int = HTTPStatus.BAD_REQUEST) -> ResponseData:
        data['error'] = outcomes.public_message(self.name, error)
        return data, code, {}

    def _invalid(self, data: dict, form: Form) -> ResponseData:
        logger.debug('%s form is not valid', self.name)
        data['errors'] = validation_errors(form)
        return data, HTTPStatus.BAD_REQUEST, {}

    def _check_captcha(self, form: CaptchaForm, ip: str) -> None:
        response = CaptchaResponse(token=form.captcha_token.data or '',
                                   value=form.captcha_value.data or '',
                                   ip_address=ip or '')
        if not self.context.captcha.verify(response):
            raise CaptchaInvalid('Captcha response did not check out')

    def _send(self, address: str, template_id: str,
              params: Mapping[str, Any]) -> None:
        """Hand a message to the mailer; delivery problems never abort."""
        try:
            self.context.mailer.send(address, template_id, params)
        except Exception:
            logger.exception('Could not send %s message', template_id)

    def _issue_account_token(self, purpose: str, account: Account,
                             now: datetime) -> str:
        return self.context.codec.issue(purpose, account.account_id, {
            'account_id': account.account_id,
            'digest': account.password_digest
        }, now)

    def _verify_account_token(self, token: Optional[str], purpose: str,
                              max_age: int) -> Account:
        """
        Get the account that a digest-bound token was issued for.

        Raises
        ------
        :class:`.InvalidToken`
            The token does not verify, or the password has changed since it
            was issued.
        :class:`.AccountNotFound`
            The account no longer exists or has been disabled.

        """
        subject_id, payload = self.context.codec.verify(token, purpose,
                                                        max_age, self.now())
        try:
            account_id = payload['account_id']
            digest = payload['digest']
        except KeyError as e:
            raise Malformed(f'{purpose} token lacks {e}') from e
        if account_id != subject_id:
            raise Malformed(f'{purpose} token subject does not match')

        account = self.context.accounts.find_by_id(account_id)
        if account is None or not account.active:
            raise AccountNotFound(f'No active account {account_id}')
        if not hmac.compare_digest(digest.encode('utf-8'),
                                   account.password_digest.encode('utf-8')):
            raise Expired('Password has changed since the token was issued')
        return account

    def _login(self, account: Account, ip: Optional[str],
               persistent: bool = False) -> Tuple[Session, str]:
        """Create a session for ``account``."""
        sessions = self.context.sessions
        try:
            session = sessions.create(account, ip, persistent=persistent)
            session_cookie = sessions.generate_cookie(session)
        except SessionCreationFailed as e:
            logger.error('Could not create session: %s', e)
            raise InternalServerError('Cannot log in') from e
        logger.debug('Created session: %s', session.session_id)
        return session, session_cookie

    def _session_cookies(self, session: Session,
                         session_cookie: str) -> Dict[str, dict]:
        return {
            self.settings.session_cookie_name: cookie(
                session_cookie, session.expires or 0,
                self.settings.cookie_secure
            )
        }

    def _remember_cookie(self, account: Account,
                         now: datetime) -> Dict[str, dict]:
        token = self._issue_account_token(domain.Purpose.REMEMBER, account,
                                          now)
        return {
            self.settings.remember_cookie_name: cookie(
                token, self.settings.remember_max_age,
                self.settings.cookie_secure
            )
        }
