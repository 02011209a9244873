"""Error taxonomy for the job relay and its HTTP mapping.

Every failure is terminal for the job instance it concerns; nothing here is
retried automatically. ``retryable`` only tells the caller whether starting a
fresh request could succeed.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class RelayError(Exception):
    """Base error for dispatch, callback and polling failures."""

    code = "relay_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(RelayError):
    """No enabled webhook destination exists for a kind."""

    code = "configuration_error"
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(RelayError):
    """External workflow answered with a non-success response or was unreachable."""

    code = "upstream_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: Any = None,
    ):
        self.upstream_status = upstream_status
        self.body = body
        super().__init__(message)


class WebhookTimeoutError(RelayError, TimeoutError):
    """Outbound webhook call exceeded the destination timeout."""

    code = "webhook_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(message)


class PollTimeoutError(RelayError, TimeoutError):
    """Job did not reach a terminal state within the polling ceiling."""

    code = "poll_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class Unauthorized(RelayError):
    """Missing or invalid callback secret or user session."""

    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(RelayError):
    """Job identifier unknown (or not visible to the caller)."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class JobFailedError(RelayError):
    """Job reached ``failed``; raised by client helpers awaiting a result."""

    code = "job_failed"


class PayloadTooLarge(RelayError):
    code = "payload_too_large"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class RateLimited(RelayError):
    code = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    retryable = True


class InternalError(RelayError):
    """Unhandled failure caught at the request boundary."""

    code = "internal_error"
    retryable = True


def error_payload(exc: RelayError) -> dict[str, Any]:
    """Structured failure body returned instead of a bare exception."""
    payload: dict[str, Any] = {
        "success": False,
        "error": exc.code,
        "detail": exc.message,
        "retryable": exc.retryable,
    }
    if isinstance(exc, UpstreamError) and exc.upstream_status is not None:
        payload["upstream_status"] = exc.upstream_status
    return payload


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Translate a RelayError into its JSON response."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "relay_error",
        error_code=exc.code,
        error=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    headers = None
    if isinstance(exc, Unauthorized):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc),
        headers=headers,
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register relay error handlers on the app."""
    app.add_exception_handler(RelayError, relay_error_handler)  # type: ignore[arg-type]
