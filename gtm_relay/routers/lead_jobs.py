"""Lead processing job endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from gtm_relay.core.errors import NotFoundError
from gtm_relay.deps.security import require_admin_token, require_callback_secret
from gtm_relay.jobs.types import LeadStage
from gtm_relay.repositories.lead_jobs import LeadJobRepository
from gtm_relay.routers.metrics import record_callback
from gtm_relay.schemas import (
    CallbackResponse,
    ErrorResponse,
    LeadCallbackRequest,
    LeadJobCreateRequest,
    LeadJobResponse,
)
from gtm_relay.services.webhooks.callbacks import LeadCallbackReceiver

router = APIRouter(prefix="/lead-jobs", tags=["lead-jobs"])
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


def _get_repository() -> LeadJobRepository:
    """Get repository instance."""
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return LeadJobRepository(_db_pool)


@router.post(
    "",
    response_model=LeadJobResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_token)],
)
async def create_lead_job(request: LeadJobCreateRequest) -> LeadJobResponse:
    """Open a lead processing job for one event and stage."""
    repo = _get_repository()
    job = await repo.create(request.event_id, request.stage, request.total_leads)
    return LeadJobResponse.model_validate(job)


@router.get(
    "/latest",
    response_model=LeadJobResponse,
    responses={404: {"model": ErrorResponse, "description": "No job for this event and stage"}},
    dependencies=[Depends(require_admin_token)],
)
async def get_latest_lead_job(
    event_id: UUID = Query(...),
    stage: LeadStage = Query(...),
) -> LeadJobResponse:
    """Most recent lead job for an event and stage (polled by the UI)."""
    repo = _get_repository()
    job = await repo.get_latest(event_id, stage)
    if job is None:
        raise NotFoundError(f"No {stage.value} job for event {event_id}")
    return LeadJobResponse.model_validate(job)


@router.post(
    "/callback",
    response_model=CallbackResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid shared secret"},
        404: {"model": ErrorResponse, "description": "Lead job not found"},
    },
    dependencies=[Depends(require_callback_secret)],
)
async def lead_job_callback(request: LeadCallbackRequest) -> CallbackResponse:
    """
    Record the aggregate outcome of a lead batch.

    Only processed/failed counts are stored; per-lead detail stays with the
    workflow. Deliveries for a finished job are acknowledged and ignored.
    """
    receiver = LeadCallbackReceiver(_get_repository())
    outcome = await receiver.receive(
        request.job_id,
        processed=request.processed,
        failed=request.failed,
        status=request.status,
        error=request.error,
    )
    record_callback("lead_job", outcome.applied)
    return CallbackResponse.model_validate(outcome.to_response())
