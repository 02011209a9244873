"""Repository for lead processing batch jobs (``lead_processing_jobs``)."""

from typing import Optional
from uuid import UUID

import structlog

from gtm_relay.jobs.models import LeadProcessingJob
from gtm_relay.jobs.types import JobStatus, LeadStage

logger = structlog.get_logger(__name__)


class LeadJobRepository:
    """Repository for lead processing job operations."""

    def __init__(self, pool):
        self._pool = pool

    async def create(
        self, event_id: UUID, stage: LeadStage, total_leads: int = 0
    ) -> LeadProcessingJob:
        """Create a job that is already ``processing`` (the batch starts now)."""
        query = """
            INSERT INTO lead_processing_jobs (event_id, stage, status, total_leads, started_at)
            VALUES ($1, $2, 'processing', $3, now())
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, event_id, stage.value, total_leads)
        job = self._row_to_job(row)
        logger.info(
            "lead_job_created",
            job_id=str(job.id),
            event_id=str(event_id),
            stage=stage.value,
            total_leads=total_leads,
        )
        return job

    async def get(self, job_id: UUID) -> Optional[LeadProcessingJob]:
        """Get a lead job by ID."""
        query = "SELECT * FROM lead_processing_jobs WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def get_latest(
        self, event_id: UUID, stage: LeadStage
    ) -> Optional[LeadProcessingJob]:
        """Most recent job for an event and stage."""
        query = """
            SELECT * FROM lead_processing_jobs
            WHERE event_id = $1 AND stage = $2
            ORDER BY created_at DESC
            LIMIT 1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, event_id, stage.value)
        return self._row_to_job(row) if row else None

    async def finalize(
        self,
        job_id: UUID,
        status: JobStatus,
        processed: int,
        failed: int,
        error_message: Optional[str] = None,
    ) -> Optional[LeadProcessingJob]:
        """Record aggregate counts and a terminal status.

        No-op (returns None) when the job is missing or already terminal.
        """
        if not status.is_terminal:
            raise ValueError(f"finalize requires a terminal status, got {status.value}")

        query = """
            UPDATE lead_processing_jobs SET
                status = $2,
                processed_leads = $3,
                failed_leads = $4,
                error_message = $5,
                completed_at = now(),
                updated_at = now()
            WHERE id = $1 AND status NOT IN ('completed', 'failed')
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                query, job_id, status.value, processed, failed, error_message
            )

        if not row:
            logger.info("lead_job_finalize_skipped", job_id=str(job_id))
            return None

        logger.info(
            "lead_job_finalized",
            job_id=str(job_id),
            status=status.value,
            processed=processed,
            failed=failed,
        )
        return self._row_to_job(row)

    def _row_to_job(self, row) -> LeadProcessingJob:
        """Convert a database row to a LeadProcessingJob."""
        return LeadProcessingJob(
            id=row["id"],
            event_id=row["event_id"],
            stage=LeadStage(row["stage"]),
            status=JobStatus(row["status"]),
            total_leads=row["total_leads"],
            processed_leads=row["processed_leads"],
            failed_leads=row["failed_leads"],
            error_message=row["error_message"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
