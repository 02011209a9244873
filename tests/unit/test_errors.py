"""Tests for the relay error taxonomy and its HTTP mapping."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gtm_relay.core.errors import (
    ConfigurationError,
    InternalError,
    JobFailedError,
    NotFoundError,
    PayloadTooLarge,
    PollTimeoutError,
    RateLimited,
    RelayError,
    Unauthorized,
    UpstreamError,
    WebhookTimeoutError,
    add_exception_handlers,
    error_payload,
)
from gtm_relay.schemas import ErrorResponse


class TestErrorPayload:
    def test_configuration_error(self):
        payload = error_payload(ConfigurationError("No enabled webhook found for type: chat"))
        assert payload == {
            "success": False,
            "error": "configuration_error",
            "detail": "No enabled webhook found for type: chat",
            "retryable": False,
        }

    def test_upstream_includes_status(self):
        payload = error_payload(UpstreamError("bad", upstream_status=503))
        assert payload["upstream_status"] == 503
        assert payload["retryable"] is True

    def test_upstream_without_status(self):
        assert "upstream_status" not in error_payload(UpstreamError("unreachable"))


class TestErrorTypes:
    def test_timeouts_are_timeout_errors(self):
        assert isinstance(WebhookTimeoutError("slow", timeout_seconds=2), TimeoutError)
        assert isinstance(PollTimeoutError("Job timed out"), TimeoutError)

    def test_status_codes(self):
        assert ConfigurationError("x").status_code == 400
        assert Unauthorized("x").status_code == 401
        assert NotFoundError("x").status_code == 404
        assert UpstreamError("x").status_code == 502
        assert WebhookTimeoutError("x").status_code == 504

    def test_all_share_base(self):
        for cls in (ConfigurationError, NotFoundError, JobFailedError, Unauthorized):
            assert issubclass(cls, RelayError)


class TestExceptionHandler:
    def _client(self, exc: RelayError) -> TestClient:
        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/boom")
        async def boom():
            raise exc

        return TestClient(app)

    def test_maps_to_json(self):
        response = self._client(NotFoundError("Job 1 not found")).get("/boom")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
        assert response.json()["detail"] == "Job 1 not found"

    def test_unauthorized_sets_challenge(self):
        response = self._client(Unauthorized("Invalid callback secret")).get("/boom")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.parametrize(
    "exc,status_code,code,retryable",
    [
        (PayloadTooLarge("too big"), 413, "payload_too_large", False),
        (RateLimited("slow down"), 429, "rate_limited", True),
        (InternalError("boom"), 500, "internal_error", True),
    ],
)
def test_boundary_errors(exc, status_code, code, retryable):
    assert exc.status_code == status_code
    assert error_payload(exc) == {
        "success": False,
        "error": code,
        "detail": exc.message,
        "retryable": retryable,
    }


def test_payload_matches_documented_schema():
    payload = error_payload(UpstreamError("bad gateway", upstream_status=503))

    documented = ErrorResponse.model_validate(payload)

    assert documented.model_dump() == payload
