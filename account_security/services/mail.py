"""
Outbound e-mail for the account flows.

Messages are rendered and delivered by a Celery task, so that an SMTP outage
never holds up or fails a registration, recovery or unlock request. The
:class:`CeleryEmailSender` only enqueues the task; if even that fails, the
error is logged and the flow carries on.
"""

from typing import Any, Dict, Mapping, Optional, Tuple
from email.message import EmailMessage
import logging
import smtplib

from celery import Celery
from jinja2 import DictLoader, Environment, StrictUndefined
from kombu.exceptions import KombuError

from .. import config

logger = logging.getLogger(__name__)

celery_app = Celery('account_security', broker=config.CELERY_BROKER_URL)
celery_app.conf.task_ignore_result = True

TEMPLATES: Dict[str, Tuple[str, str]] = {
    'register': (
        'Activate your account',
        'Someone, hopefully you, asked to create an account for this'
        ' address.\n\n'
        'To choose a password and activate the account, follow this link'
        ' within 24 hours:\n\n'
        '{{ base_url }}/user/register/activate?token={{ token }}\n\n'
        'If you did not ask for this, you can ignore this message.\n'
    ),
    'recover': (
        'Reset your password',
        'To choose a new password, follow this link within one hour:\n\n'
        '{{ base_url }}/user/recover/activate?token={{ token }}\n\n'
        'The link stops working as soon as your password is changed.\n'
    ),
    'unlock': (
        'Unlock your account',
        'Your account was temporarily locked after several failed login'
        ' attempts. To unlock it and log in, follow this link within one'
        ' hour:\n\n'
        '{{ base_url }}/user/unlock/confirm?token={{ token }}\n'
    ),
}

_env = Environment(loader=DictLoader({
    f'{template_id}.txt': body for template_id, (_, body) in TEMPLATES.items()
}), undefined=StrictUndefined, autoescape=False)


def render(template_id: str, params: Mapping[str, Any],
           base_url: Optional[str] = None,
           mail_from: Optional[str] = None) -> EmailMessage:
    """Build the message for ``template_id``; ``KeyError`` if unknown."""
    subject, _ = TEMPLATES[template_id]
    base_url = config.BASE_URL if base_url is None else base_url
    context = {'base_url': base_url.rstrip('/')}
    context.update(params)
    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = config.MAIL_FROM if mail_from is None else mail_from
    message.set_content(_env.get_template(f'{template_id}.txt')
                        .render(**context))
    return message


class MailSession(object):
    """An open session with an SMTP service."""

    def __init__(self, host: str = "", port: int = 0) -> None:
        self._host = host
        self._port = port

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port)

    def send_message(self, message: EmailMessage) -> None:
        """Deliver a single message."""
        with self._new_connection() as conn:
            conn.send_message(message)


def transport_settings(base_url: Optional[str] = None,
                       mail_from: Optional[str] = None,
                       smtp_host: Optional[str] = None,
                       smtp_port: Optional[int] = None) -> Dict[str, Any]:
    """Delivery settings for :func:`send_message`, defaulting to config."""
    return {
        'base_url': config.BASE_URL if base_url is None else base_url,
        'mail_from': config.MAIL_FROM if mail_from is None else mail_from,
        'smtp_host': config.SMTP_HOST if smtp_host is None else smtp_host,
        'smtp_port': int(config.SMTP_PORT if smtp_port is None else smtp_port)
    }


@celery_app.task(autoretry_for=(smtplib.SMTPException, OSError),
                 retry_backoff=True, max_retries=3)
def send_message(address: str, template_id: str, params: Dict[str, Any],
                 transport: Optional[Dict[str, Any]] = None) -> None:
    """
    Render and deliver an account e-mail.

    ``transport`` holds the settings of the queueing process; missing keys
    fall back to :mod:`.config`.
    """
    settings = transport_settings(**(transport or {}))
    message = render(template_id, params, base_url=settings['base_url'],
                     mail_from=settings['mail_from'])
    message['To'] = address
    MailSession(settings['smtp_host'], settings['smtp_port']) \
        .send_message(message)
    logger.info('Sent %s message', template_id)


class CeleryEmailSender(object):
    """Queues account e-mail for asynchronous delivery."""

    def __init__(self, base_url: Optional[str] = None,
                 mail_from: Optional[str] = None,
                 smtp_host: Optional[str] = None,
                 smtp_port: Optional[int] = None) -> None:
        self.transport = transport_settings(base_url, mail_from, smtp_host,
                                            smtp_port)

    def send(self, address: str, template_id: str,
             params: Mapping[str, Any]) -> None:
        """Enqueue a message. Never raises on broker failure."""
        if template_id not in TEMPLATES:
            raise ValueError(f'Unknown e-mail template: {template_id}')
        try:
            send_message.delay(address, template_id, dict(params),
                               dict(self.transport))
        except KombuError as e:
            logger.error('Could not queue %s message: %s', template_id, e)
