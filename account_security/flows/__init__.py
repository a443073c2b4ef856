"""
The account flows.

A :class:`FlowEngine` is built once per process around the shared service
objects and handed to request-handling code. Each flow is an attribute of
the engine, and each step returns the ``(data, status_code, headers)``
triple that the web layer turns into a response:

.. code-block:: python

   data, code, headers = engine.login.submit(request.form, ip, next_page)
   for name, kwargs in data.get('cookies', {}).items():
       response.set_cookie(name, **kwargs)
"""

from typing import Optional

from ..attacks import AttackMonitor
from ..attempts import AttemptTracker
from ..interfaces import AccountStore, CaptchaVerifier, Clock, EmailSender, \
    PasswordHasher, SessionStore
from ..tokens import TokenCodec
from ..util import SystemClock
from .authentication import LoginFlow, LogoutFlow, RememberFlow
from .base import FlowContext, FlowSettings, ResponseData
from .recovery import RecoveryFlow, UnlockFlow
from .registration import RegistrationFlow


class FlowEngine(object):
    """Registration, login, remember-me, recovery, unlock and logout."""

    def __init__(self, codec: TokenCodec, tracker: AttemptTracker,
                 monitor: AttackMonitor, accounts: AccountStore,
                 captcha: CaptchaVerifier, mailer: EmailSender,
                 hasher: PasswordHasher, sessions: SessionStore,
                 clock: Optional[Clock] = None,
                 settings: Optional[FlowSettings] = None) -> None:
        self.context = FlowContext(
            codec=codec,
            tracker=tracker,
            monitor=monitor,
            accounts=accounts,
            captcha=captcha,
            mailer=mailer,
            hasher=hasher,
            sessions=sessions,
            clock=clock or SystemClock(),
            settings=settings or FlowSettings()
        )
        self.register = RegistrationFlow(self.context)
        self.login = LoginFlow(self.context)
        self.remember = RememberFlow(self.context)
        self.recover = RecoveryFlow(self.context)
        self.unlock = UnlockFlow(self.context)
        self.logout = LogoutFlow(self.context)
