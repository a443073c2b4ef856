"""Tests for :mod:`account_security.flows.recovery`."""

from unittest import TestCase
from http import HTTPStatus

from account_security.domain import Account, Purpose
from account_security.flows import outcomes
from account_security.flows.forms import PasswordForm

from .util import IP, PASSWORD, add_account, email_form, login, new_engine, \
    password_form, sent_token

NEW_PASSWORD = 'battery staple 7'


class TestRecoveryRequest(TestCase):
    """The user asks for a password reset link."""

    def setUp(self):
        self.engine = new_engine()
        self.account = add_account(self.engine)
        self.mailer = self.engine.context.mailer

    def test_registered(self):
        data, code, headers = self.engine.recover.request(
            email_form('Jane@University.edu'), IP
        )
        self.assertEqual(code, HTTPStatus.OK)
        self.assertEqual(data['message'], outcomes.EMAIL_SENT)
        address, template_id, params = self.mailer.send.call_args[0]
        self.assertEqual(address, 'jane@university.edu')
        self.assertEqual(template_id, 'recover')
        subject, payload = self.engine.context.codec.verify(
            params['token'], Purpose.RECOVER, 3600,
            self.engine.context.clock.now()
        )
        self.assertEqual(subject, self.account.account_id)
        self.assertEqual(payload['digest'], self.account.password_digest)

    def test_unknown(self):
        """Same response; no message."""
        data, code, headers = self.engine.recover.request(
            email_form('nobody@university.edu'), IP
        )
        self.assertEqual(code, HTTPStatus.OK)
        self.assertEqual(data['message'], outcomes.EMAIL_SENT)
        self.mailer.send.assert_not_called()

    def test_disabled(self):
        self.engine.context.accounts.set_status(self.account.account_id,
                                                Account.DISABLED)
        data, code, headers = self.engine.recover.request(
            email_form('jane@university.edu'), IP
        )
        self.assertEqual(code, HTTPStatus.OK)
        self.mailer.send.assert_not_called()

    def test_bad_captcha(self):
        self.engine.context.captcha.verify.return_value = False
        data, code, headers = self.engine.recover.request(
            email_form('jane@university.edu'), IP
        )
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.CAPTCHA_FAILED)
        self.mailer.send.assert_not_called()


class TestRecoveryComplete(TestCase):
    """The user follows the link and sets a new password."""

    def setUp(self):
        self.engine = new_engine()
        self.account = add_account(self.engine)
        self.engine.recover.request(email_form('jane@university.edu'), IP)
        self.token = sent_token(self.engine)

    def test_activate(self):
        data, code, headers = self.engine.recover.activate(self.token)
        self.assertEqual(code, HTTPStatus.OK)
        self.assertIsInstance(data['form'], PasswordForm)

    def test_complete(self):
        data, code, headers = self.engine.recover.complete(
            password_form(self.token, NEW_PASSWORD), IP
        )
        self.assertEqual(code, HTTPStatus.SEE_OTHER)
        self.assertEqual(data['session'].account_id, self.account.account_id)

        self.engine.context.clock.advance(5)
        _, code, _ = login(self.engine, 'jane@university.edu', PASSWORD)
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.engine.context.clock.advance(5)
        _, code, _ = login(self.engine, 'jane@university.edu', NEW_PASSWORD)
        self.assertEqual(code, HTTPStatus.SEE_OTHER)

    def test_second_use(self):
        """Once the password has changed, the link is spent."""
        self.engine.recover.complete(password_form(self.token, NEW_PASSWORD),
                                     IP)
        data, code, headers = self.engine.recover.activate(self.token)
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.RECOVER_FAILED)
        data, code, headers = self.engine.recover.complete(
            password_form(self.token, 'yet another 3'), IP
        )
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.RECOVER_FAILED)

    def test_expired(self):
        self.engine.context.clock.advance(3601)
        data, code, headers = self.engine.recover.activate(self.token)
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.RECOVER_FAILED)

    def test_mismatched_passwords(self):
        data, code, headers = self.engine.recover.complete(
            password_form(self.token, NEW_PASSWORD, 'battery staple 8'), IP
        )
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['errors'][0].field, 'password2')

    def test_unlock_token_cannot_reset(self):
        self.engine.unlock.request(email_form('jane@university.edu'), IP)
        unlock_token = sent_token(self.engine)
        data, code, headers = self.engine.recover.complete(
            password_form(unlock_token, NEW_PASSWORD), IP
        )
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.RECOVER_FAILED)


class TestUnlock(TestCase):
    """Lifting a lockout with an e-mailed link."""

    def setUp(self):
        self.engine = new_engine()
        self.account = add_account(self.engine)
        self.clock = self.engine.context.clock
        for _ in range(12):
            login(self.engine, 'jane@university.edu', 'wrong password 1')
            self.clock.advance(1)

    def test_locked(self):
        _, code, _ = login(self.engine, 'jane@university.edu')
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)

    def test_confirm(self):
        self.engine.unlock.request(email_form('jane@university.edu'), IP)
        address, template_id, params = \
            self.engine.context.mailer.send.call_args[0]
        self.assertEqual(template_id, 'unlock')

        data, code, headers = self.engine.unlock.confirm(params['token'], IP)
        self.assertEqual(code, HTTPStatus.SEE_OTHER)
        self.assertEqual(data['session'].account_id, self.account.account_id)
        self.assertFalse(self.engine.context.tracker.is_locked(
            self.account.account_id, self.clock.now()
        ))
        _, code, _ = login(self.engine, 'jane@university.edu')
        self.assertEqual(code, HTTPStatus.SEE_OTHER)

    def test_forged(self):
        data, code, headers = self.engine.unlock.confirm('foo.bar', IP)
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertTrue(self.engine.context.tracker.is_locked(
            self.account.account_id, self.clock.now()
        ))

    def test_recover_token_cannot_unlock(self):
        self.engine.recover.request(email_form('jane@university.edu'), IP)
        data, code, headers = self.engine.unlock.confirm(
            sent_token(self.engine), IP
        )
        self.assertEqual(code, HTTPStatus.BAD_REQUEST)
        self.assertEqual(data['error'], outcomes.UNLOCK_FAILED)
