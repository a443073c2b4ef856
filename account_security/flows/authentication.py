"""
Login, remember-me and logout.

Before a submitted password is even looked at, the login flow asks the
:class:`.AttackMonitor` whether a captcha is required and the
:class:`.AttemptTracker` whether the account is in a backoff period. Every
failure gets the same message, whatever the cause.
"""

from typing import Optional, Tuple
from datetime import datetime
from http import HTTPStatus
import hmac
import logging
import secrets

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError

from ..domain import Account, Purpose, Session
from ..exceptions import AccountLocked, AccountNotFound, CaptchaInvalid, \
    InvalidSignature, InvalidToken, PasswordMismatch, \
    SessionCreationFailed, SessionDeletionFailed, UnknownSession
from ..util import normalize_email
from .base import Flow, ResponseData, cookie
from .forms import LoginForm

logger = logging.getLogger(__name__)


class LoginFlow(Flow):
    """Password login, with lockout and attack detection."""

    name = 'login'

    _dummy_hash: Optional[str] = None

    def submit(self, params: MultiDict, ip: str,
               next_page: str = '/') -> ResponseData:
        """Handle submission of the login form."""
        now = self.now()
        form = LoginForm(params)
        data = {'form': form, 'next_page': next_page}
        if self.context.monitor.is_under_attack(now):
            data['captcha_required'] = True
            try:
                self._check_captcha(form, ip)
            except CaptchaInvalid as e:
                return self._failure(data, e)
        if not form.validate():
            return self._invalid(data, form)

        try:
            account = self.authenticate(form.email.data, form.password.data,
                                        now)
        except (AccountNotFound, AccountLocked, PasswordMismatch) as e:
            return self._failure(data, e)

        session, session_cookie = self._login(account, ip)
        cookies = self._session_cookies(session, session_cookie)
        if form.remember_me.data:
            cookies.update(self._remember_cookie(account, now))
        data.update({'session': session, 'cookies': cookies})
        return data, HTTPStatus.SEE_OTHER, {'Location': next_page}

    def authenticate(self, email: str, password: str,
                     now: datetime) -> Account:
        """
        Check credentials, applying the lockout policy.

        Unknown addresses are tracked under the address itself, so that
        they lock exactly like registered ones.

        Raises
        ------
        :class:`.AccountLocked`
        :class:`.AccountNotFound`
        :class:`.PasswordMismatch`

        """
        tracker = self.context.tracker
        monitor = self.context.monitor
        email = normalize_email(email)
        account = self.context.accounts.find_by_email(email)
        key = account.account_id if account is not None else email

        if tracker.is_locked(key, now):
            monitor.record_outcome(False, now)
            logger.info('Login refused during backoff; retry in %i seconds',
                        tracker.retry_after(key, now))
            raise AccountLocked('Too many failed attempts')

        error: Exception
        if account is None or not account.active:
            self.context.hasher.verify(password, self._get_dummy_hash())
            error = AccountNotFound('No active account for address')
        elif not self.context.hasher.verify(password, account.password_hash):
            error = PasswordMismatch('Incorrect password')
        else:
            tracker.reset(key)
            monitor.record_outcome(True, now)
            return account

        record = tracker.record_failure(key, now)
        monitor.record_outcome(False, now)
        logger.debug('Failed login number %i for this subject',
                     record.failures)
        raise error

    def _get_dummy_hash(self) -> str:
        """A hash to check passwords against when there is no account."""
        if self._dummy_hash is None:
            self._dummy_hash = self.context.hasher.hash(
                secrets.token_urlsafe(16)
            )
        return self._dummy_hash


class RememberFlow(Flow):
    """Resume a session from a remember-me cookie."""

    name = 'remember'

    def issue(self, account: Account) -> str:
        """Generate a remember-me token for ``account``."""
        return self._issue_account_token(Purpose.REMEMBER, account,
                                         self.now())

    def resume(self, remember_cookie: Optional[str],
               ip: str) -> Optional[Tuple[Session, str]]:
        """
        Log in from a remember-me cookie.

        Any problem with the cookie just means the request stays anonymous.

        Returns
        -------
        :class:`.Session`
        str
            Session cookie.
        None
            If the cookie is absent or not acceptable.

        """
        if not remember_cookie:
            return None
        try:
            account = self._verify_account_token(
                remember_cookie, Purpose.REMEMBER,
                self.settings.remember_max_age
            )
        except (InvalidToken, AccountNotFound) as e:
            logger.debug('Remember-me cookie not accepted: %s: %s',
                         type(e).__name__, e)
            return None
        sessions = self.context.sessions
        try:
            session = sessions.create(account, ip, persistent=True)
        except SessionCreationFailed as e:
            logger.error('Could not create session: %s', e)
            return None
        return session, sessions.generate_cookie(session)


class LogoutFlow(Flow):
    """End a session, guarded by a token bound to that session."""

    name = 'logout'

    def issue(self, session: Session) -> str:
        """Generate the anti-forgery value for the logout form."""
        return self.context.codec.issue(Purpose.LOGOUT, session.session_id,
                                        {'session_id': session.session_id},
                                        self.now())

    def submit(self, token: Optional[str], session_id: Optional[str],
               next_page: str = '/') -> ResponseData:
        """Handle submission of the logout form."""
        data: dict = {'next_page': next_page}
        try:
            subject, payload = self.context.codec.verify(
                token, Purpose.LOGOUT, self.settings.logout_max_age,
                self.now()
            )
            if not session_id or payload.get('session_id') != subject \
                    or not hmac.compare_digest(subject.encode('utf-8'),
                                               session_id.encode('utf-8')):
                raise InvalidSignature('Logout token is for another session')
            self.context.sessions.delete_by_id(session_id)
        except (InvalidToken, UnknownSession) as e:
            return self._failure(data, e)
        except SessionDeletionFailed as e:
            logger.error('Logout failed: %s', e)
            raise InternalServerError('Cannot log out') from e

        secure = self.settings.cookie_secure
        data['cookies'] = {
            self.settings.session_cookie_name: cookie('', 0, secure),
            self.settings.remember_cookie_name: cookie('', 0, secure)
        }
        return data, HTTPStatus.SEE_OTHER, {'Location': next_page}
