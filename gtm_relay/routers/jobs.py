"""Job status endpoints (owner-scoped)."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from gtm_relay.core.errors import NotFoundError
from gtm_relay.deps.security import get_current_user
from gtm_relay.jobs.models import AuthenticatedUser
from gtm_relay.repositories.jobs import JobRepository
from gtm_relay.schemas import ErrorResponse, JobListResponse, JobResponse

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


def _get_repository() -> JobRepository:
    """Get repository instance."""
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return JobRepository(_db_pool)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    responses={
        200: {"description": "Job status retrieved"},
        401: {"model": ErrorResponse, "description": "Missing or invalid session"},
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_job_status(
    job_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
) -> JobResponse:
    """
    Get the status of a job the caller owns.

    Job statuses:
    - pending: created, not yet sent
    - processing: sent to the workflow, waiting for its callback
    - completed: ``result`` holds the workflow answer
    - failed: ``error`` holds a readable message

    Jobs owned by other users are reported as not found.
    """
    repo = _get_repository()
    job = await repo.get_for_owner(job_id, user.id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")

    logger.debug("job_status_read", job_id=str(job_id), status=job.status.value)
    return JobResponse.model_validate(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    conversation_id: UUID = Query(..., description="Conversation to list jobs for"),
    limit: int = Query(50, ge=1, le=200),
    user: AuthenticatedUser = Depends(get_current_user),
) -> JobListResponse:
    """List the caller's jobs in a conversation, newest first."""
    repo = _get_repository()
    jobs = await repo.list_by_conversation(user.id, conversation_id, limit=limit)
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        count=len(jobs),
    )
