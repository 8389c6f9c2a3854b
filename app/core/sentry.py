"""
Sentry error tracking integration for the health engine.

Provides:
- Exception capture for alert rule faults and failed accounts
- Breadcrumbs from standard logging
- Account context on captured events
"""

import logging
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)

# Global flag to track initialization
_sentry_initialized = False


def init_sentry(dsn: Optional[str] = None) -> None:
    """
    Initialize Sentry SDK.

    Called once by the entry point. Without a DSN, error tracking stays off
    and capture_exception becomes a no-op.
    """
    global _sentry_initialized

    from app.config import settings

    sentry_dsn = dsn or settings.SENTRY_DSN
    if not sentry_dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.WARNING,
                event_level=logging.ERROR,
            ),
        ],
        before_send=filter_sensitive_data,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

    _sentry_initialized = True
    logger.info(f"Sentry initialized for {settings.ENVIRONMENT} environment")


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Filter sensitive data before sending to Sentry.

    Alert notes are free text written by CSMs and may contain customer
    details, so note content never leaves the process.
    """
    extra = event.get("extra")
    if isinstance(extra, dict):
        for field in ("note", "content", "notes"):
            if field in extra:
                extra[field] = "[Filtered]"
    return event


def capture_exception(
    exception: BaseException,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Capture an exception to Sentry with additional context.

    Args:
        exception: The exception to capture
        context: Additional context data (account id, rule type, ...)

    Returns:
        Sentry event ID if captured, None otherwise
    """
    if not _sentry_initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        if context:
            for key, value in context.items():
                scope.set_extra(key, value)
        return sentry_sdk.capture_exception(exception)
