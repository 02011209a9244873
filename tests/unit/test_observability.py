"""Tests for Sentry filtering, Prometheus metrics and the health endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from gtm_relay.config import Settings
from gtm_relay.core.errors import NotFoundError, UpstreamError
from gtm_relay.core.sentry import _before_send, _create_traces_sampler, init_sentry
from gtm_relay.routers import health, metrics
from gtm_relay.schemas import DependencyHealth


class TestSentryFilters:
    def test_drops_client_errors(self):
        exc = NotFoundError("Job missing")
        hint = {"exc_info": (type(exc), exc, None)}
        assert _before_send({}, hint) is None

    def test_keeps_upstream_errors(self):
        exc = UpstreamError("bad gateway", upstream_status=500)
        event = {"message": "x"}
        assert _before_send(event, {"exc_info": (type(exc), exc, None)}) is event

    def test_drops_4xx_response_context(self):
        event = {"contexts": {"response": {"status_code": 401}}}
        assert _before_send(event, {}) is None

    def test_tags_event_with_bound_job_context(self):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            kind="chat", job_id="job-1", request_id="req-1", method="POST"
        )
        try:
            event = _before_send({"message": "x"}, {})
        finally:
            structlog.contextvars.clear_contextvars()

        assert event["tags"] == {"kind": "chat", "job_id": "job-1", "request_id": "req-1"}

    def test_upstream_errors_grouped_by_kind_and_status(self):
        exc = UpstreamError("bad gateway", upstream_status=503)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(kind="lead_enrichment")
        try:
            event = _before_send({}, {"exc_info": (type(exc), exc, None)})
        finally:
            structlog.contextvars.clear_contextvars()

        assert event["fingerprint"] == ["upstream_error", "lead_enrichment", "503"]

    def test_unreachable_upstream_fingerprint(self):
        exc = UpstreamError("connection refused")
        structlog.contextvars.clear_contextvars()
        event = _before_send({}, {"exc_info": (type(exc), exc, None)})

        assert event["fingerprint"] == ["upstream_error", "unknown", "unreachable"]
        assert "kind" not in event["tags"]

    def test_sampler_routes(self):
        sampler = _create_traces_sampler(Settings(sentry_traces_sample_rate=0.25))

        def ctx(name, parent=None):
            return {"transaction_context": {"name": name}, "parent_sampled": parent}

        assert sampler(ctx("gtm_relay.routers.health.health_check")) == 0.0
        assert sampler(ctx("gtm_relay.routers.webhooks.invoke_webhook")) == 1.0
        assert sampler(ctx("gtm_relay.routers.webhooks.webhook_callback")) == 1.0
        assert sampler(ctx("gtm_relay.routers.metrics.metrics")) == 0.0
        assert sampler(ctx("gtm_relay.routers.jobs.get_job_status", parent=True)) == 1.0
        assert sampler(ctx("gtm_relay.routers.jobs.get_job_status")) == 0.25

    def test_init_without_dsn_is_noop(self):
        assert init_sentry(Settings(sentry_dsn=None)) is False


class TestMetrics:
    def test_record_dispatch(self):
        before = REGISTRY.get_sample_value(
            "gtm_relay_webhook_dispatches_total", {"kind": "chat", "outcome": "ok"}
        ) or 0.0

        metrics.record_dispatch("chat", "ok", 0.2)

        after = REGISTRY.get_sample_value(
            "gtm_relay_webhook_dispatches_total", {"kind": "chat", "outcome": "ok"}
        )
        assert after == before + 1

    def test_record_callback_outcomes(self):
        labels = {"target": "job", "outcome": "ignored"}
        before = REGISTRY.get_sample_value("gtm_relay_callbacks_total", labels) or 0.0

        metrics.record_callback("job", applied=False)

        assert REGISTRY.get_sample_value("gtm_relay_callbacks_total", labels) == before + 1

    def test_metrics_endpoint(self):
        app = FastAPI()
        app.include_router(metrics.router)

        response = TestClient(app).get("/metrics")

        assert response.status_code == 200
        assert "gtm_relay_requests_total" in response.text


class TestHealth:
    @pytest.mark.asyncio
    async def test_database_without_pool(self):
        with patch.object(health, "_db_pool", None):
            result = await health.check_database_health()
        assert result.status == "error"

    @pytest.mark.asyncio
    async def test_database_ok(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval = AsyncMock(return_value=1)
        pool.get_size = MagicMock(return_value=2)
        pool.get_idle_size = MagicMock(return_value=1)

        with patch.object(health, "_db_pool", pool):
            result = await health.check_database_health()

        assert result.status == "ok"
        assert result.latency_ms is not None

    def test_degraded_when_dependency_down(self):
        app = FastAPI()
        app.include_router(health.router)

        with patch.object(
            health,
            "check_database_health",
            AsyncMock(return_value=DependencyHealth(status="ok", latency_ms=1.0)),
        ), patch.object(
            health,
            "check_supabase_health",
            AsyncMock(return_value=DependencyHealth(status="error", error="down")),
        ):
            response = TestClient(app).get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"]["status"] == "ok"
        assert data["supabase"]["error"] == "down"
