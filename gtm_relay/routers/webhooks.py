"""Webhook dispatch and callback ingress."""

import time
from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status

from gtm_relay.config import Settings, get_settings
from gtm_relay.core.errors import RelayError
from gtm_relay.deps.security import get_current_user, require_callback_secret
from gtm_relay.jobs.models import AuthenticatedUser
from gtm_relay.repositories.jobs import JobRepository
from gtm_relay.repositories.webhooks import WebhookConfigRepository
from gtm_relay.routers.metrics import record_callback, record_dispatch
from gtm_relay.schemas import (
    CallbackRequest,
    CallbackResponse,
    ErrorResponse,
    InvokeWebhookRequest,
    InvokeWebhookResponse,
)
from gtm_relay.services.webhooks.callbacks import CallbackReceiver
from gtm_relay.services.webhooks.dispatcher import WebhookDispatcher

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


def _require_pool():
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return _db_pool


def _get_dispatcher(settings: Settings) -> WebhookDispatcher:
    """Build a dispatcher over the shared pool."""
    pool = _require_pool()
    return WebhookDispatcher(
        WebhookConfigRepository(pool),
        JobRepository(pool),
        callback_url=settings.callback_url,
        default_timeout_ms=settings.webhook_default_timeout_ms,
    )


def _get_receiver() -> CallbackReceiver:
    """Build a callback receiver over the shared pool."""
    pool = _require_pool()
    return CallbackReceiver(JobRepository(pool))


@router.post(
    "/invoke",
    response_model=InvokeWebhookResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No enabled webhook for this kind"},
        401: {"model": ErrorResponse, "description": "Missing or invalid session"},
        404: {"model": ErrorResponse, "description": "Supplied job not found"},
        502: {
            "model": ErrorResponse,
            "description": "Workflow returned an error or was unreachable",
        },
        504: {"model": ErrorResponse, "description": "Workflow did not answer in time"},
    },
)
async def invoke_webhook(
    request: InvokeWebhookRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> InvokeWebhookResponse:
    """
    Send a payload to the workflow configured for its kind.

    Chat requests without a job id get one created and returned as
    ``job_id``; the answer arrives later through the callback and is read
    with ``GET /jobs/{job_id}``. Synchronous kinds answer inline in ``data``.
    """
    dispatcher = _get_dispatcher(settings)
    kind = request.kind.value

    start = time.perf_counter()
    try:
        result = await dispatcher.dispatch(
            request.kind,
            request.payload,
            user,
            job_id=request.job_id,
            conversation_id=request.conversation_id,
        )
    except RelayError as e:
        record_dispatch(kind, e.code, time.perf_counter() - start)
        raise
    record_dispatch(kind, "ok", time.perf_counter() - start)

    return InvokeWebhookResponse.model_validate(result.to_response())


@router.post(
    "/callback",
    response_model=CallbackResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid shared secret"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        422: {"description": "Job id missing"},
    },
)
async def webhook_callback(
    request: CallbackRequest,
    x_job_id: Optional[UUID] = Header(default=None),
    _: bool = Depends(require_callback_secret),
) -> CallbackResponse:
    """
    Deliver a workflow result onto its job.

    The job id comes from the body or the ``X-Job-Id`` header. Deliveries for
    a job that is already completed or failed are acknowledged with
    ``applied: false`` and change nothing.
    """
    job_id = request.job_id or x_job_id
    if job_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="job_id is required (body or X-Job-Id header)",
        )
    structlog.contextvars.bind_contextvars(job_id=str(job_id))

    receiver = _get_receiver()
    outcome = await receiver.receive(
        job_id,
        result=request.result,
        error=request.error,
        status=request.status,
    )
    record_callback("job", outcome.applied)
    return CallbackResponse.model_validate(outcome.to_response())
