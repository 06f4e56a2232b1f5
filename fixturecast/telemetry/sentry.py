"""
Sentry integration for error tracking.

Events from the HTTP layer carry FastAPI request context; scheduled runs are
tagged with the job id and target date. Provider and fixture API keys never
leave the process: headers and query strings are scrubbed in before_send and
request bodies are dropped.
"""

import logging
import re
from contextlib import contextmanager
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)

_sentry_initialized = False

SENSITIVE_HEADERS = {
    "x-api-key",
    "x-apisports-key",
    "x-goog-api-key",
    "authorization",
    "cookie",
    "set-cookie",
}

_SENSITIVE_QUERY = re.compile(r"(?i)(token|api_key|key|secret|password)=([^&]*)")


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """before_send hook: redact credentials from the request section."""
    try:
        request = event.get("request") or {}

        headers = request.get("headers") or {}
        request["headers"] = {
            name: "[REDACTED]" if name.lower() in SENSITIVE_HEADERS else value
            for name, value in headers.items()
        }

        query_string = request.get("query_string")
        if isinstance(query_string, str) and query_string:
            request["query_string"] = _SENSITIVE_QUERY.sub(r"\1=[REDACTED]", query_string)

        if "data" in request:
            request["data"] = "[SCRUBBED]"

        event["request"] = request
    except Exception as e:
        # Never drop an event because scrubbing failed
        logger.warning(f"Sentry scrubbing error (continuing): {e}")

    return event


def init_sentry() -> bool:
    """
    Initialize the Sentry SDK when SENTRY_DSN is set.

    Returns True if Sentry is active. SENTRY_ENABLED=false disables it even
    with a DSN configured.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True

    settings = get_settings()
    if not settings.SENTRY_ENABLED:
        logger.info("Sentry disabled via SENTRY_ENABLED=false")
        return False
    if not settings.SENTRY_DSN:
        logger.info("Sentry not configured (SENTRY_DSN not set)")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.ERROR, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
        before_send=scrub_sensitive_data,
        ignore_errors=[KeyboardInterrupt, SystemExit],
    )

    _sentry_initialized = True
    logger.info(
        f"Sentry initialized: env={settings.SENTRY_ENVIRONMENT}, "
        f"traces_sample_rate={settings.SENTRY_TRACES_SAMPLE_RATE}"
    )
    return True


@contextmanager
def sentry_job_context(job_id: str, **extra_tags):
    """
    Tag a scheduled job's scope; exceptions are captured and re-raised.

        with sentry_job_context("predictions", date="2024-01-15"):
            ...

    Yields None when Sentry is not initialized.
    """
    if not _sentry_initialized:
        yield None
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("job_id", job_id)
        for name, value in extra_tags.items():
            scope.set_tag(name, value)
        scope.set_context("job", {"job_id": job_id, **extra_tags})

        try:
            yield scope
        except Exception as e:
            sentry_sdk.capture_exception(e)
            raise
