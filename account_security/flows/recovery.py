"""
Password recovery and account unlock.

Both start the same way: the user submits an e-mail address and a captcha
answer, and if an active account uses that address a link is mailed to it.
The response does not depend on whether one does.

The tokens in those links embed a digest of the account's password hash at
the time they were issued. Once the password changes, every outstanding
recovery, unlock and remember-me token for the account stops verifying, so a
reset link cannot be used twice.
"""

from http import HTTPStatus
from typing import Optional
import logging

from werkzeug.datastructures import MultiDict

from ..domain import Purpose
from ..exceptions import AccountNotFound, CaptchaInvalid, InvalidToken
from ..util import normalize_email
from . import outcomes
from .base import Flow, ResponseData
from .forms import EmailRequestForm, PasswordForm

logger = logging.getLogger(__name__)


class _LinkRequestFlow(Flow):
    """Mails a digest-bound link to the owner of an address, if any."""

    purpose = ''

    def request(self, params: MultiDict, ip: str) -> ResponseData:
        """Handle submission of the e-mail address form."""
        form = EmailRequestForm(params)
        data = {'form': form}
        try:
            self._check_captcha(form, ip)
        except CaptchaInvalid as e:
            return self._failure(data, e)
        if not form.validate():
            return self._invalid(data, form)

        account = self.context.accounts.find_by_email(
            normalize_email(form.email.data)
        )
        if account is not None and account.active:
            token = self._issue_account_token(self.purpose, account,
                                              self.now())
            self._send(account.email, self.name, {'token': token})
        else:
            logger.debug('%s requested for an unknown address', self.name)
        data['message'] = outcomes.EMAIL_SENT
        return data, HTTPStatus.OK, {}


class RecoveryFlow(_LinkRequestFlow):
    """Reset a forgotten password via an e-mailed link."""

    name = 'recover'
    purpose = Purpose.RECOVER

    def activate(self, token: Optional[str]) -> ResponseData:
        """Handle a click on the recovery link."""
        data: dict = {}
        try:
            self._verify_account_token(token, Purpose.RECOVER,
                                       self.settings.recover_max_age)
        except (InvalidToken, AccountNotFound) as e:
            return self._failure(data, e)
        data['form'] = PasswordForm(data={'token': token})
        return data, HTTPStatus.OK, {}

    def complete(self, params: MultiDict, ip: str,
                 next_page: str = '/') -> ResponseData:
        """Handle submission of the new password."""
        form = PasswordForm(params)
        data = {'form': form, 'next_page': next_page}
        if not form.validate():
            return self._invalid(data, form)

        try:
            account = self._verify_account_token(
                form.token.data, Purpose.RECOVER,
                self.settings.recover_max_age
            )
            password_hash = self.context.hasher.hash(form.password.data)
            account = self.context.accounts.update_password_hash(
                account.account_id, password_hash
            )
        except (InvalidToken, AccountNotFound) as e:
            return self._failure(data, e)
        logger.info('Password reset for account %s', account.account_id)

        session, session_cookie = self._login(account, ip)
        data.update({
            'session': session,
            'cookies': self._session_cookies(session, session_cookie)
        })
        return data, HTTPStatus.SEE_OTHER, {'Location': next_page}


class UnlockFlow(_LinkRequestFlow):
    """Lift a lockout via an e-mailed link, and log in."""

    name = 'unlock'
    purpose = Purpose.UNLOCK

    def confirm(self, token: Optional[str], ip: str,
                next_page: str = '/') -> ResponseData:
        """Handle a click on the unlock link."""
        data: dict = {'next_page': next_page}
        try:
            account = self._verify_account_token(
                token, Purpose.UNLOCK, self.settings.unlock_max_age
            )
        except (InvalidToken, AccountNotFound) as e:
            return self._failure(data, e)
        self.context.tracker.reset(account.account_id)
        logger.info('Unlocked account %s', account.account_id)

        session, session_cookie = self._login(account, ip)
        data.update({
            'session': session,
            'cookies': self._session_cookies(session, session_cookie)
        })
        return data, HTTPStatus.SEE_OTHER, {'Location': next_page}
