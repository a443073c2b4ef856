"""
Account security for web applications.

This package provides the account flows of a web site (registration with
e-mail verification, login with optional remember-me cookie, password
recovery, account unlock, and logout) together with the brute-force
defenses they rely on. No flow keeps state on the server between steps:
state travels in signed, purpose-scoped action tokens (:mod:`.tokens`)
that expire on their own and, where they act on an account, stop working
as soon as its password changes.

Failed logins are throttled per account with an exponential backoff
(:mod:`.attempts`), and a global sliding window of login outcomes
(:mod:`.attacks`) switches on a captcha when the failure ratio suggests a
brute-force campaign.

Quick start
-----------

.. code-block:: python

   from account_security.factory import create_flow_engine

   engine = create_flow_engine()    # Once per process.

   # In a request handler:
   data, code, headers = engine.register.request(request.form,
                                                 request.remote_addr)

The account database, session store, captcha, mailer and password hash are
reached through the interfaces in :mod:`.interfaces`; :mod:`.services`
provides implementations of them.
"""

from .domain import Account, Session, Purpose
from .flows import FlowEngine
