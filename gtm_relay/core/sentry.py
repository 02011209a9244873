"""Sentry setup for the relay.

Events are tagged with the job context bound into structlog contextvars
(``kind``, ``job_id``, ``request_id``) so an upstream failure can be traced
back to the job row that recorded it.
"""

import os
from typing import Any, Callable, Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from gtm_relay import __version__
from gtm_relay.config import Settings
from gtm_relay.core.errors import UpstreamError

logger = structlog.get_logger(__name__)

# Context keys copied from the bound log context onto events
CONTEXT_TAGS = ("kind", "job_id", "request_id")

# Endpoint name suffix -> fixed trace sample rate
ROUTE_SAMPLE_RATES = {
    "health_check": 0.0,
    "metrics": 0.0,
    "invoke_webhook": 1.0,
    "webhook_callback": 1.0,
}


def _status_of(event: dict, hint: dict) -> int:
    exc_info = hint.get("exc_info")
    if exc_info and hasattr(exc_info[1], "status_code"):
        return int(exc_info[1].status_code)
    response = event.get("contexts", {}).get("response", {})
    return int(response.get("status_code", 0) or 0)


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """Drop 4xx caller errors, tag the rest with the job context.

    Upstream failures are grouped per kind and upstream status instead of
    per stack trace, since they all raise from the same dispatch line.
    """
    if 400 <= _status_of(event, hint) < 500:
        return None

    context = structlog.contextvars.get_contextvars()
    tags = event.setdefault("tags", {})
    for key in CONTEXT_TAGS:
        if context.get(key) is not None:
            tags[key] = str(context[key])

    exc_info = hint.get("exc_info")
    exc = exc_info[1] if exc_info else None
    if isinstance(exc, UpstreamError):
        event["fingerprint"] = [
            "upstream_error",
            str(context.get("kind", "unknown")),
            str(exc.upstream_status or "unreachable"),
        ]

    return event


def _create_traces_sampler(settings: Settings) -> Callable[[dict], float]:
    def traces_sampler(sampling_context: dict) -> float:
        tx_name = sampling_context.get("transaction_context", {}).get("name", "")
        endpoint = tx_name.rsplit(".", 1)[-1]
        if endpoint in ROUTE_SAMPLE_RATES:
            return ROUTE_SAMPLE_RATES[endpoint]

        parent = sampling_context.get("parent_sampled")
        if parent is not None:
            return float(parent)
        return settings.sentry_traces_sample_rate

    return traces_sampler


def init_sentry(settings: Settings) -> bool:
    """Initialize Sentry when a DSN is configured; returns whether it did."""
    if not settings.sentry_dsn:
        return False

    integrations: list[Any] = [
        # Error-level log events become Sentry events, nothing below
        LoggingIntegration(level=None, event_level="ERROR"),
        StarletteIntegration(transaction_style="endpoint"),
        FastApiIntegration(transaction_style="endpoint"),
    ]
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=settings.git_sha or os.environ.get("GIT_SHA", f"gtm-relay@{__version__}"),
        integrations=integrations,
        traces_sampler=_create_traces_sampler(settings),
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", "gtm-relay")

    logger.info(
        "sentry_initialized",
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    return True
