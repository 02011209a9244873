"""Prometheus metrics endpoint for the GTM webhook relay."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

# Request metrics
REQUEST_COUNT = Counter(
    "gtm_relay_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "gtm_relay_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Dispatch metrics
WEBHOOK_DISPATCHES = Counter(
    "gtm_relay_webhook_dispatches_total",
    "Outbound webhook calls by kind and outcome",
    ["kind", "outcome"],  # ok, configuration_error, upstream_error, webhook_timeout, ...
)

WEBHOOK_DISPATCH_LATENCY = Histogram(
    "gtm_relay_webhook_dispatch_latency_seconds",
    "Outbound webhook call duration in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
)

# Callback metrics
CALLBACKS_RECEIVED = Counter(
    "gtm_relay_callbacks_total",
    "Workflow callbacks by target and outcome",
    ["target", "outcome"],  # target: job, lead_job; outcome: applied, ignored
)

# Connection pool metrics
DB_POOL_SIZE = Gauge(
    "gtm_relay_db_pool_size",
    "Current database connection pool size",
)

DB_POOL_AVAILABLE = Gauge(
    "gtm_relay_db_pool_available",
    "Available connections in database pool",
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record request metrics."""
    REQUEST_COUNT.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_dispatch(kind: str, outcome: str, duration: float):
    """Record an outbound webhook call."""
    WEBHOOK_DISPATCHES.labels(kind=kind, outcome=outcome).inc()
    WEBHOOK_DISPATCH_LATENCY.labels(kind=kind).observe(duration)


def record_callback(target: str, applied: bool):
    """Record a callback delivery."""
    CALLBACKS_RECEIVED.labels(
        target=target, outcome="applied" if applied else "ignored"
    ).inc()


def set_db_pool_metrics(pool_size: int, available: int):
    """Set database pool metrics."""
    DB_POOL_SIZE.set(pool_size)
    DB_POOL_AVAILABLE.set(available)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    This endpoint is excluded from OpenAPI docs.
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
