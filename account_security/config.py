"""Configuration for the account security services."""
import os
import secrets

#################### Action tokens ####################
TOKEN_SECRETS = os.environ.get('TOKEN_SECRETS', secrets.token_urlsafe(32))
"""Comma-separated signing keys for action tokens, newest first.

Tokens are signed with the first key and verified against all of them, so a
key can be rotated by prepending a new one and dropping the old one after
the longest token lifetime has passed."""

REGISTER_TOKEN_MAX_AGE = os.environ.get('REGISTER_TOKEN_MAX_AGE', '86400')
"""Seconds for which an account activation link is valid."""

REMEMBER_TOKEN_MAX_AGE = os.environ.get('REMEMBER_TOKEN_MAX_AGE', '2592000')
"""Seconds for which a remember-me cookie is honored (30 days)."""

RECOVER_TOKEN_MAX_AGE = os.environ.get('RECOVER_TOKEN_MAX_AGE', '3600')
"""Seconds for which a password recovery link is valid."""

UNLOCK_TOKEN_MAX_AGE = os.environ.get('UNLOCK_TOKEN_MAX_AGE', '3600')
"""Seconds for which an account unlock link is valid."""

LOGOUT_TOKEN_MAX_AGE = os.environ.get('LOGOUT_TOKEN_MAX_AGE', '600')
"""Seconds for which a logout form value is valid."""

#################### Brute-force defenses ####################
LOCKOUT_TTL = os.environ.get('LOCKOUT_TTL', '1800')
"""Seconds after the last failure at which a lockout record is forgotten.

Also the upper bound on the backoff period."""

LOCKOUT_SHARDS = os.environ.get('LOCKOUT_SHARDS', '64')
"""Number of independently locked partitions of the lockout table."""

LOCKOUT_MAX_RECORDS_PER_SHARD = os.environ.get(
    'LOCKOUT_MAX_RECORDS_PER_SHARD',
    '10000'
)
"""Shard size that triggers compaction of expired lockout records."""

ATTACK_BUCKET_SECONDS = os.environ.get('ATTACK_BUCKET_SECONDS', '60')
ATTACK_NUM_BUCKETS = os.environ.get('ATTACK_NUM_BUCKETS', '60')
"""The attack window covers ``ATTACK_BUCKET_SECONDS * ATTACK_NUM_BUCKETS``."""

ATTACK_MIN_SAMPLE_SIZE = os.environ.get('ATTACK_MIN_SAMPLE_SIZE', '1000')
ATTACK_THRESHOLD = os.environ.get('ATTACK_THRESHOLD', '0.99')
"""Failure ratio over the window above which login requires a captcha."""

#################### Passwords ####################
BCRYPT_ROUNDS = os.environ.get('BCRYPT_ROUNDS', '12')

#################### Captcha ####################
CAPTCHA_SECRET = os.environ.get('CAPTCHA_SECRET', secrets.token_urlsafe(16))
"""Used to encrypt captcha answers, so that we don't need to store them."""

CAPTCHA_EXPIRES = os.environ.get('CAPTCHA_EXPIRES', '300')

#################### Sessions ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '7000')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_TOKEN = os.environ.get('REDIS_TOKEN', None)
"""This is the token used in the AUTH procedure."""
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '1')

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""

JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Signs session cookies."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '36000')

SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'ACCOUNT_SESSION')
REMEMBER_COOKIE_NAME = os.environ.get('REMEMBER_COOKIE_NAME',
                                      'ACCOUNT_REMEMBER')
COOKIE_SECURE = bool(int(os.environ.get('COOKIE_SECURE', '1')))

#################### Accounts ####################
DATABASE_URI = os.environ.get('DATABASE_URI', 'sqlite:///accounts.db')
"""SQLAlchemy URI for the account store."""

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '0')))

#################### Mail ####################
SMTP_HOST = os.environ.get('SMTP_HOST', 'localhost')
SMTP_PORT = os.environ.get('SMTP_PORT', '25')
MAIL_FROM = os.environ.get('MAIL_FROM', 'no-reply@localhost')
BASE_URL = os.environ.get('BASE_URL', 'https://localhost')
"""Prefix for links sent by e-mail."""

CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL',
                                   'redis://localhost:6379/0')

#################### Logging ####################
LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '1')))
"""Emit log records as JSON objects on stderr."""
