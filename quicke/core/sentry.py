"""Sentry error tracking integration.

Enabled only when SENTRY_DSN is set. Provider failures that the dispatcher
already turns into per-model outcomes (rate limits, overloads, timeouts,
missing keys) are dropped before sending; only unexpected errors reach
Sentry.
"""

import logging

from quicke.core.config import settings
from quicke.dispatch.errors import ErrorType, ProviderError

logger = logging.getLogger(__name__)

# Routine provider failures, reported to the user rather than to Sentry
EXPECTED_PROVIDER_ERRORS = frozenset(
    {
        ErrorType.API_KEY_MISSING,
        ErrorType.RATE_LIMIT,
        ErrorType.SERVER_OVERLOADED,
        ErrorType.TIMEOUT,
        ErrorType.INSUFFICIENT_BALANCE,
        ErrorType.INSUFFICIENT_QUOTA,
        ErrorType.QUEUE_FULL,
        ErrorType.CANCELLED,
    }
)


def before_send(event: dict, hint: dict) -> dict | None:
    """Drop events raised by expected provider failures."""
    exc_info = hint.get("exc_info")
    if exc_info:
        error = exc_info[1]
        if isinstance(error, ProviderError) and error.error_type in EXPECTED_PROVIDER_ERRORS:
            return None
    return event


def init_sentry() -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True when enabled."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.asyncio import AsyncioIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=before_send,
        integrations=[
            AsyncioIntegration(),
            HttpxIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
    )
    sentry_sdk.set_tag("providers", ",".join(sorted(settings.provider_api_keys)) or "none")
    logger.info("Sentry initialized (env=%s, providers=%d)", settings.app_env, len(settings.provider_api_keys))
    return True
