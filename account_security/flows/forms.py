"""Forms for the account flows."""

from typing import List
import re

from wtforms import BooleanField, Form, HiddenField, PasswordField, \
    StringField
from wtforms import ValidationError as FieldError
from wtforms.validators import DataRequired, Email, EqualTo, Length

from ..exceptions import ValidationError

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 64


class CaptchaForm(Form):
    """Fields carrying the answer to a stateless captcha challenge."""

    captcha_value = StringField('Are you a robot?',
                                description="Please enter the text that you"
                                            " see in the image above")
    captcha_token = HiddenField()


class EmailRequestForm(CaptchaForm):
    """Asks for an e-mail address to send a registration, reset or unlock
    link to."""

    email = StringField(
        'Email address',
        validators=[DataRequired(), Email(), Length(max=255)],
        description="You must be able to receive mail at this address."
    )


class PasswordForm(Form):
    """Choose a password; carries the action token from the e-mail link."""

    token = HiddenField(validators=[DataRequired()])
    password = PasswordField(
        'Password',
        validators=[DataRequired(),
                    Length(min=PASSWORD_MIN_LENGTH, max=PASSWORD_MAX_LENGTH)],
        description=f"Please choose a password that is between"
                    f" {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH}"
                    f" characters in length, with at least one letter and"
                    f" one digit. Longer passwords are more secure."
    )
    password2 = PasswordField(
        'Re-enter password',
        validators=[DataRequired(),
                    EqualTo('password', message='Passwords must match')],
        description="Your passwords must match."
    )

    def validate_password(self, field: PasswordField) -> None:
        """Require a mix of letters and digits."""
        if not re.search(r'[^\W\d_]', field.data) \
                or not re.search(r'\d', field.data):
            raise FieldError('Password must contain a letter and a digit')


class LoginForm(CaptchaForm):
    """Log in form."""

    email = StringField('E-mail', validators=[DataRequired(),
                                              Length(max=255)])
    password = PasswordField('Password', validators=[DataRequired()])
    remember_me = BooleanField('Have your browser remember who you are?',
                               default=False)


def validation_errors(form: Form) -> List[ValidationError]:
    """Collect the field errors of a validated form."""
    return [ValidationError(field, reason)
            for field, reasons in form.errors.items()
            for reason in reasons]
