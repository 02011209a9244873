"""HTTP middleware for the relay: request context, limits and failure shaping.

Every response leaving the service carries ``X-Request-ID`` and
``X-API-Version``. Failures produced here (oversized body, rate limit,
unhandled exception) use the same JSON body as ``RelayError`` handlers.
"""

import os
import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from gtm_relay import __version__
from gtm_relay.config import Settings
from gtm_relay.core.errors import (
    InternalError,
    PayloadTooLarge,
    RateLimited,
    RelayError,
    error_payload,
)
from gtm_relay.routers import metrics

logger = structlog.get_logger(__name__)

# Headers browsers and the workflow system send us
ALLOWED_HEADERS = [
    "Authorization",
    "Content-Type",
    "X-Admin-Token",
    "X-Job-Id",
    "X-N8N-API-Key",
    "X-Request-ID",
]
EXPOSED_HEADERS = ["X-Request-ID", "X-Response-Time-Ms", "X-API-Version"]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS = "max-age=31536000; includeSubDomains"


def relay_error_response(exc: RelayError, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc),
        headers={"X-Request-ID": request_id, "X-API-Version": __version__},
    )


async def _rate_limited_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    request_id = request.headers.get("X-Request-ID", "")
    logger.warning("rate_limited", limit=str(exc.detail))
    return relay_error_response(
        RateLimited(f"Rate limit exceeded: {exc.detail}"), request_id
    )


def setup_rate_limiter(app: FastAPI, settings: Settings) -> Limiter:
    """Per-client-IP limit; callbacks from the workflow system count too."""
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_requests_per_minute}/minute"],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limited_handler)  # type: ignore[arg-type]
    return limiter


def cors_origins_from_env() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "*").strip()
    if raw == "*":
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def setup_cors(app: FastAPI) -> None:
    origins = cors_origins_from_env()
    if origins == ["*"]:
        logger.warning("cors_allow_all_origins")
    else:
        logger.info("cors_origins_configured", origins=origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
    )


def _route_template(request: Request) -> str:
    """Route path for metric labels, so job ids don't explode cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def _bind_request_context(request: Request, request_id: str) -> None:
    """Fresh log context per request; callbacks also carry their job id."""
    structlog.contextvars.clear_contextvars()
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }
    job_id = request.headers.get("X-Job-Id")
    if job_id:
        context["job_id"] = job_id
    structlog.contextvars.bind_contextvars(**context)


def _body_too_large(request: Request, limit: int) -> bool:
    content_length = request.headers.get("content-length")
    try:
        return content_length is not None and int(content_length) > limit
    except ValueError:
        return False


def create_request_middleware(settings: Settings):
    """Request id, log context, body limit, timing and metrics."""

    async def request_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        _bind_request_context(request, request_id)

        if _body_too_large(request, settings.max_request_body_size):
            limit_mb = settings.max_request_body_size // (1024 * 1024)
            logger.warning(
                "request_body_too_large",
                content_length=request.headers.get("content-length"),
                max_size=settings.max_request_body_size,
            )
            return relay_error_response(
                PayloadTooLarge(f"Request body too large. Maximum size is {limit_mb}MB"),
                request_id,
            )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("request_failed", error=str(e))
            return relay_error_response(InternalError("Internal server error"), request_id)
        duration = time.perf_counter() - start

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration * 1000:.2f}"
        response.headers["X-API-Version"] = __version__
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if request.headers.get("X-Forwarded-Proto") == "https":
            response.headers["Strict-Transport-Security"] = HSTS

        if request.url.path != "/metrics":
            metrics.record_request(
                method=request.method,
                endpoint=_route_template(request),
                status_code=response.status_code,
                duration=duration,
            )
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response

    return request_middleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    setup_rate_limiter(app, settings)
    setup_cors(app)
    app.middleware("http")(create_request_middleware(settings))
