"""
Account registration.

1. The user submits an e-mail address and a captcha answer. If no account
   uses the address, an activation link carrying a ``register`` token is
   mailed to it. The response is the same either way.
2. The user follows the link. If the token checks out and the address is
   still free, they get a password form that carries the token along.
3. The user submits a password. The token and the address are checked
   again, the account is created and the user is logged in.
"""

from typing import Optional
from http import HTTPStatus
import logging

from werkzeug.datastructures import MultiDict

from ..domain import Purpose
from ..exceptions import AccountExists, CaptchaInvalid, InvalidToken, \
    Malformed
from ..util import normalize_email
from . import outcomes
from .base import Flow, ResponseData
from .forms import EmailRequestForm, PasswordForm

logger = logging.getLogger(__name__)


class RegistrationFlow(Flow):
    """Create an account, verifying the e-mail address first."""

    name = 'register'

    def request(self, params: MultiDict, ip: str) -> ResponseData:
        """Handle submission of the registration request form."""
        form = EmailRequestForm(params)
        data = {'form': form}
        try:
            self._check_captcha(form, ip)
        except CaptchaInvalid as e:
            return self._failure(data, e)
        if not form.validate():
            return self._invalid(data, form)

        email = normalize_email(form.email.data)
        if self.context.accounts.find_by_email(email) is None:
            token = self.context.codec.issue(Purpose.REGISTER, email,
                                             {'email': email}, self.now())
            self._send(email, 'register', {'token': token})
        else:
            logger.debug('Registration requested for a registered address')
        data['message'] = outcomes.EMAIL_SENT
        return data, HTTPStatus.OK, {}

    def activate(self, token: Optional[str]) -> ResponseData:
        """Handle a click on the activation link."""
        data: dict = {}
        try:
            email = self._verify(token)
        except (InvalidToken, AccountExists) as e:
            return self._failure(data, e)
        data.update({'form': PasswordForm(data={'token': token}),
                     'email': email})
        return data, HTTPStatus.OK, {}

    def complete(self, params: MultiDict, ip: str,
                 next_page: str = '/') -> ResponseData:
        """Handle submission of the password form; create the account."""
        form = PasswordForm(params)
        data = {'form': form, 'next_page': next_page}
        if not form.validate():
            return self._invalid(data, form)

        try:
            email = self._verify(form.token.data)
            password_hash = self.context.hasher.hash(form.password.data)
            account = self.context.accounts.create(email, password_hash)
        except (InvalidToken, AccountExists) as e:
            return self._failure(data, e)
        logger.info('Registered account %s', account.account_id)

        session, session_cookie = self._login(account, ip)
        data.update({
            'session': session,
            'cookies': self._session_cookies(session, session_cookie)
        })
        return data, HTTPStatus.SEE_OTHER, {'Location': next_page}

    def _verify(self, token: Optional[str]) -> str:
        """Get the e-mail address from a ``register`` token, if still free."""
        subject, payload = self.context.codec.verify(
            token, Purpose.REGISTER, self.settings.register_max_age,
            self.now()
        )
        email = payload.get('email')
        if email is None or email != subject:
            raise Malformed('Registration token does not name an address')
        if self.context.accounts.find_by_email(email) is not None:
            raise AccountExists('Address was registered after the token')
        return email
