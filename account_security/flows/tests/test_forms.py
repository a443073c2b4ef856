"""Tests for :mod:`account_security.flows.forms`."""

from unittest import TestCase

from werkzeug.datastructures import MultiDict

from account_security.exceptions import ValidationError
from account_security.flows.forms import EmailRequestForm, LoginForm, \
    PasswordForm, validation_errors


class TestPasswordForm(TestCase):
    """Password policy."""

    def validate(self, password, password2=None):
        form = PasswordForm(MultiDict({
            'token': 'foo.bar',
            'password': password,
            'password2': password if password2 is None else password2
        }))
        return form.validate(), form

    def test_valid(self):
        self.assertTrue(self.validate('abcdefg1')[0])
        self.assertTrue(self.validate('ä' * 63 + '1')[0])

    def test_too_short(self):
        self.assertFalse(self.validate('abcdef1')[0])

    def test_too_long(self):
        self.assertFalse(self.validate('a' * 64 + '1')[0])

    def test_needs_letter_and_digit(self):
        self.assertFalse(self.validate('abcdefgh')[0])
        self.assertFalse(self.validate('12345678')[0])
        self.assertFalse(self.validate('________1')[0])

    def test_must_match(self):
        valid, form = self.validate('abcdefg1', 'abcdefg2')
        self.assertFalse(valid)
        self.assertIn('password2', form.errors)

    def test_token_required(self):
        form = PasswordForm(MultiDict({'password': 'abcdefg1',
                                       'password2': 'abcdefg1'}))
        self.assertFalse(form.validate())
        self.assertIn('token', form.errors)


class TestEmailRequestForm(TestCase):
    def test_valid(self):
        form = EmailRequestForm(MultiDict({'email': 'jane@university.edu'}))
        self.assertTrue(form.validate())

    def test_not_an_address(self):
        form = EmailRequestForm(MultiDict({'email': 'jane'}))
        self.assertFalse(form.validate())
        errors = validation_errors(form)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], ValidationError)
        self.assertEqual(errors[0].field, 'email')


class TestLoginForm(TestCase):
    def test_remember_me(self):
        form = LoginForm(MultiDict({'email': 'jane@university.edu',
                                    'password': 'x', 'remember_me': 'y'}))
        self.assertTrue(form.validate())
        self.assertTrue(form.remember_me.data)

    def test_missing_password(self):
        form = LoginForm(MultiDict({'email': 'jane@university.edu'}))
        self.assertFalse(form.validate())
