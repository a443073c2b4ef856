"""Build the account security services from configuration."""

from typing import Any, Dict, Mapping, Optional
import logging

from sqlalchemy import create_engine

from . import config as default_config
from .app_logging import setup_logger
from .attacks import AttackMonitor
from .attempts import AttemptTracker
from .flows import FlowEngine, FlowSettings
from .passwords import BcryptHasher
from .services.accounts import SQLAlchemyAccountStore
from .services.captcha import StatelessCaptcha
from .services.mail import CeleryEmailSender, celery_app
from .services.sessions import SessionStore
from .tokens import SecretKeys, TokenCodec

logger = logging.getLogger(__name__)


def get_config(overrides: Optional[Mapping[str, Any]] = None) \
        -> Dict[str, Any]:
    """Configuration values from :mod:`.config`, updated by ``overrides``."""
    config = {key: getattr(default_config, key)
              for key in dir(default_config) if key.isupper()}
    if overrides:
        config.update(overrides)
    return config


def get_settings(config: Mapping[str, Any]) -> FlowSettings:
    """Token lifetimes and cookie parameters for the flows."""
    return FlowSettings(
        register_max_age=int(config['REGISTER_TOKEN_MAX_AGE']),
        remember_max_age=int(config['REMEMBER_TOKEN_MAX_AGE']),
        recover_max_age=int(config['RECOVER_TOKEN_MAX_AGE']),
        unlock_max_age=int(config['UNLOCK_TOKEN_MAX_AGE']),
        logout_max_age=int(config['LOGOUT_TOKEN_MAX_AGE']),
        session_cookie_name=config['SESSION_COOKIE_NAME'],
        remember_cookie_name=config['REMEMBER_COOKIE_NAME'],
        cookie_secure=bool(config['COOKIE_SECURE'])
    )


def create_tracker(config: Mapping[str, Any]) -> AttemptTracker:
    return AttemptTracker(
        ttl=int(config['LOCKOUT_TTL']),
        shards=int(config['LOCKOUT_SHARDS']),
        max_records_per_shard=int(config['LOCKOUT_MAX_RECORDS_PER_SHARD'])
    )


def create_monitor(config: Mapping[str, Any]) -> AttackMonitor:
    return AttackMonitor(
        bucket_seconds=int(config['ATTACK_BUCKET_SECONDS']),
        num_buckets=int(config['ATTACK_NUM_BUCKETS']),
        min_sample_size=int(config['ATTACK_MIN_SAMPLE_SIZE']),
        threshold=float(config['ATTACK_THRESHOLD'])
    )


def create_session_store(config: Mapping[str, Any]) -> SessionStore:
    """Get a new session store connection."""
    return SessionStore(
        config['REDIS_HOST'],
        int(config['REDIS_PORT']),
        int(config['REDIS_DATABASE']),
        config['JWT_SECRET'],
        int(config['SESSION_DURATION']),
        token=config['REDIS_TOKEN'],
        cluster=config['REDIS_CLUSTER'] == '1',
        fake=bool(config['REDIS_FAKE'])
    )


def create_mailer(config: Mapping[str, Any]) -> CeleryEmailSender:
    """Point the mail task at the configured broker and build a sender."""
    celery_app.conf.broker_url = config['CELERY_BROKER_URL']
    return CeleryEmailSender(
        base_url=config['BASE_URL'],
        mail_from=config['MAIL_FROM'],
        smtp_host=config['SMTP_HOST'],
        smtp_port=int(config['SMTP_PORT'])
    )


def create_account_store(config: Mapping[str, Any]) \
        -> SQLAlchemyAccountStore:
    store = SQLAlchemyAccountStore(create_engine(config['DATABASE_URI']))
    if config['CREATE_DB']:
        store.create_all()
    return store


def create_flow_engine(overrides: Optional[Mapping[str, Any]] = None) \
        -> FlowEngine:
    """
    Wire up a :class:`.FlowEngine` and all of its collaborators.

    Call this once per process; the engine and the lockout and attack state
    it holds are shared by every request.
    """
    config = get_config(overrides)
    if not logging.getLogger().handlers:
        setup_logger(config['LOGLEVEL'], json=bool(config['LOG_JSON']))
    engine = FlowEngine(
        codec=TokenCodec(SecretKeys.from_string(config['TOKEN_SECRETS'])),
        tracker=create_tracker(config),
        monitor=create_monitor(config),
        accounts=create_account_store(config),
        captcha=StatelessCaptcha(config['CAPTCHA_SECRET'],
                                 int(config['CAPTCHA_EXPIRES'])),
        mailer=create_mailer(config),
        hasher=BcryptHasher(int(config['BCRYPT_ROUNDS'])),
        sessions=create_session_store(config),
        settings=get_settings(config)
    )
    logger.info('Account flow engine ready')
    return engine
