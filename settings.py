import logging
import sys
from typing import Any

import sentry_sdk
from decouple import config
from dotenv import load_dotenv
from sentry_sdk.integrations.logging import LoggingIntegration

load_dotenv()


def str_to_bool(value: str) -> bool:
    return str(value).lower() in ("1", "true", "yes", "on")


def get_envs(env_key: str, cast, default=None) -> str | int | float | bool | Any:
    if cast == bool:
        cast = str_to_bool
    return config(env_key, cast=cast, default=default)


PORT = get_envs("PORT", cast=int, default=5000)
LOG_LEVEL = get_envs("LOG_LEVEL", cast=str, default="INFO")

RECORD_STORE_BACKEND = get_envs("RECORD_STORE_BACKEND", cast=str, default="redis")
REDIS_URL = get_envs("REDIS_URL", cast=str, default="redis://localhost:6379/0")
REDIS_KEY_PREFIX = get_envs("REDIS_KEY_PREFIX", cast=str, default="seta")
STORE_TIMEOUT_SECONDS = get_envs("STORE_TIMEOUT_SECONDS", cast=float, default=5.0)
STORE_TRANSACTION_ATTEMPTS = get_envs("STORE_TRANSACTION_ATTEMPTS", cast=int, default=5)

LATEST_VERSION_LOOKAHEAD = get_envs("LATEST_VERSION_LOOKAHEAD", cast=int, default=5)

ACCOUNTING_MAX_WORKERS = get_envs("ACCOUNTING_MAX_WORKERS", cast=int, default=4)
ACCOUNTING_DRAIN_TIMEOUT = get_envs("ACCOUNTING_DRAIN_TIMEOUT", cast=float, default=10.0)

DOWNLOAD_TIMEOUT_SECONDS = get_envs("DOWNLOAD_TIMEOUT_SECONDS", cast=float, default=30.0)

SENTRY_DSN = get_envs("SENTRY_DSN", cast=str, default="")
SENTRY_ENVIRONMENT = get_envs("SENTRY_ENVIRONMENT", cast=str, default="production")
SENTRY_LOG_LEVEL = get_envs("SENTRY_LOG_LEVEL", cast=str, default="ERROR")

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

if SENTRY_DSN:
    sentry_logging = LoggingIntegration(
        level=logging.INFO,
        event_level=getattr(logging, SENTRY_LOG_LEVEL.upper(), logging.ERROR),
    )

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=True,
        environment=SENTRY_ENVIRONMENT,
        integrations=[sentry_logging],
        traces_sample_rate=get_envs(
            "SENTRY_TRACES_SAMPLE_RATE", cast=float, default=1.0
        ),
        profiles_sample_rate=get_envs(
            "SENTRY_PROFILES_SAMPLE_RATE", cast=float, default=1.0
        ),
    )
    logging.getLogger(__name__).info(
        f"Sentry logging integration configured - capturing {SENTRY_LOG_LEVEL}+ logs"
    )
else:
    logging.getLogger(__name__).info("Sentry DSN not configured - errors will only be logged")
