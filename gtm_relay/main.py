"""GTM Webhook Relay - FastAPI Application."""

import logging

import structlog
from fastapi import FastAPI

from gtm_relay import __version__
from gtm_relay.config import get_settings
from gtm_relay.core.errors import add_exception_handlers
from gtm_relay.core.lifespan import lifespan
from gtm_relay.core.middleware import setup_middleware
from gtm_relay.core.sentry import init_sentry
from gtm_relay.routers import admin_webhooks, health, jobs, lead_jobs, metrics, webhooks

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

init_sentry(settings)

app = FastAPI(
    title="GTM Webhook Relay",
    description="Async job relay between the GTM assistant and its workflows",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

if not settings.docs_enabled:
    logger.info("api_docs_disabled")

setup_middleware(app, settings)
add_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(webhooks.router)
app.include_router(jobs.router)
app.include_router(lead_jobs.router)
app.include_router(admin_webhooks.router)
app.include_router(metrics.router)  # Metrics endpoint (excluded from OpenAPI)


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "GTM Webhook Relay",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gtm_relay.main:app",
        host=settings.service_host,
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )
