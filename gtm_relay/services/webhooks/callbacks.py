"""Accept asynchronous result deliveries from the workflow system."""

import hmac
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID

import structlog

from gtm_relay.core.errors import NotFoundError, Unauthorized
from gtm_relay.jobs.models import LeadProcessingJob
from gtm_relay.jobs.types import JobStatus
from gtm_relay.services.webhooks.dispatcher import JobStore

logger = structlog.get_logger(__name__)


class LeadJobStore(Protocol):
    async def get(self, job_id: UUID) -> Optional[LeadProcessingJob]: ...

    async def finalize(
        self,
        job_id: UUID,
        status: JobStatus,
        processed: int,
        failed: int,
        error_message: Optional[str] = None,
    ) -> Optional[LeadProcessingJob]: ...


@dataclass
class CallbackOutcome:
    """What a callback did to its job.

    ``applied`` is False when the job was already terminal and the delivery
    was ignored.
    """

    job_id: UUID
    applied: bool
    status: JobStatus

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "job_id": str(self.job_id),
            "applied": self.applied,
            "status": self.status.value,
        }


def verify_shared_secret(provided: Optional[str], expected: Optional[str]) -> None:
    """Constant-time check of the workflow system's shared secret.

    Raises Unauthorized when either side is missing or they differ, so an
    unconfigured server rejects every callback.
    """
    if not expected:
        logger.warning("callback_secret_not_configured")
        raise Unauthorized("Callback secret not configured")
    if not provided:
        raise Unauthorized("Missing callback secret")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise Unauthorized("Invalid callback secret")


def resolve_status(status: Optional[JobStatus], error: Optional[str]) -> JobStatus:
    """Explicit status wins; otherwise an error means failed."""
    if status is not None:
        return status
    return JobStatus.FAILED if error else JobStatus.COMPLETED


class CallbackReceiver:
    """Finalizes jobs from callbacks, ignoring deliveries for terminal jobs."""

    def __init__(self, jobs: JobStore):
        self._jobs = jobs

    async def receive(
        self,
        job_id: UUID,
        result: Any = None,
        error: Optional[str] = None,
        status: Optional[JobStatus] = None,
    ) -> CallbackOutcome:
        target = resolve_status(status, error)
        if not target.is_terminal:
            raise ValueError(f"Callback status must be terminal, got {target.value}")

        job = await self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")

        if not job.status.can_transition_to(target):
            logger.info(
                "callback_ignored_terminal",
                job_id=str(job_id),
                current_status=job.status.value,
                delivered_status=target.value,
            )
            return CallbackOutcome(job_id=job_id, applied=False, status=job.status)

        if error is None and target == JobStatus.FAILED:
            error = "Workflow reported failure"

        updated = await self._jobs.finalize(job_id, target, result=result, error=error)
        if updated is None:
            # Lost the race to another terminal write
            current = await self._jobs.get(job_id)
            final_status = current.status if current else target
            logger.info("callback_ignored_terminal", job_id=str(job_id))
            return CallbackOutcome(job_id=job_id, applied=False, status=final_status)

        logger.info("callback_applied", job_id=str(job_id), status=target.value)
        return CallbackOutcome(job_id=job_id, applied=True, status=updated.status)


class LeadCallbackReceiver:
    """Finalizes lead processing jobs from batch callbacks."""

    def __init__(self, lead_jobs: LeadJobStore):
        self._lead_jobs = lead_jobs

    async def receive(
        self,
        job_id: UUID,
        processed: int,
        failed: int,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
    ) -> CallbackOutcome:
        """Record aggregate counts for a lead processing batch."""
        target = resolve_status(status, error)
        if not target.is_terminal:
            raise ValueError(f"Callback status must be terminal, got {target.value}")

        job = await self._lead_jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Lead job {job_id} not found")

        if not job.status.can_transition_to(target):
            logger.info(
                "lead_callback_ignored_terminal",
                job_id=str(job_id),
                current_status=job.status.value,
            )
            return CallbackOutcome(job_id=job_id, applied=False, status=job.status)

        updated = await self._lead_jobs.finalize(
            job_id, target, processed=processed, failed=failed, error_message=error
        )
        if updated is None:
            return CallbackOutcome(job_id=job_id, applied=False, status=target)

        logger.info(
            "lead_callback_applied",
            job_id=str(job_id),
            status=target.value,
            processed=processed,
            failed=failed,
        )
        return CallbackOutcome(job_id=job_id, applied=True, status=updated.status)
