"""Repository for webhook job records (``chat_jobs``)."""

import json
from typing import Any, Optional
from uuid import UUID

import structlog

from gtm_relay.jobs.models import Job
from gtm_relay.jobs.types import JobKind, JobStatus

logger = structlog.get_logger(__name__)

_TERMINAL = "('completed', 'failed')"


def _decode_jsonb(value: Any) -> Any:
    """asyncpg hands jsonb back as text unless a codec is registered."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class JobRepository:
    """Single-row reads and writes on the job table.

    Writes are independent single-row updates keyed by job id. Terminal
    writes are conditional on the row not being terminal yet, which is the
    only guard against a late callback racing a dispatcher write.
    """

    def __init__(self, pool):
        self._pool = pool

    async def create(
        self,
        user_id: UUID,
        kind: JobKind,
        payload: dict[str, Any],
        conversation_id: Optional[UUID] = None,
    ) -> Job:
        """Create a job in ``pending`` owned by ``user_id``."""
        query = """
            INSERT INTO chat_jobs (user_id, conversation_id, webhook_type, payload, status)
            VALUES ($1, $2, $3, $4::jsonb, 'pending')
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                query,
                user_id,
                conversation_id,
                kind.value,
                json.dumps(payload or {}),
            )
        job = self._row_to_job(row)
        logger.info(
            "job_created",
            job_id=str(job.id),
            kind=kind.value,
            user_id=str(user_id),
        )
        return job

    async def mark_processing(self, job_id: UUID) -> Optional[Job]:
        """Move a pending job to ``processing``.

        Returns None when the job is missing or already past pending.
        """
        query = """
            UPDATE chat_jobs SET
                status = 'processing',
                updated_at = now()
            WHERE id = $1 AND status = 'pending'
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id)
        if row:
            logger.info("job_processing", job_id=str(job_id))
            return self._row_to_job(row)
        return None

    async def finalize(
        self,
        job_id: UUID,
        status: JobStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Write a terminal outcome unless the job is already terminal.

        Returns the updated job, or None if nothing changed (job missing or
        already completed/failed).
        """
        if not status.is_terminal:
            raise ValueError(f"finalize requires a terminal status, got {status.value}")

        stored_result = (
            json.dumps(result) if status == JobStatus.COMPLETED and result is not None else None
        )
        stored_error = error if status == JobStatus.FAILED else None

        query = f"""
            UPDATE chat_jobs SET
                status = $2,
                result = $3::jsonb,
                error = $4,
                completed_at = now(),
                updated_at = now()
            WHERE id = $1 AND status NOT IN {_TERMINAL}
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id, status.value, stored_result, stored_error)

        if not row:
            logger.info("job_finalize_skipped", job_id=str(job_id), status=status.value)
            return None

        job = self._row_to_job(row)
        if status == JobStatus.COMPLETED:
            logger.info("job_completed", job_id=str(job_id))
        else:
            logger.warning("job_failed", job_id=str(job_id), error=stored_error)
        return job

    async def get(self, job_id: UUID) -> Optional[Job]:
        """Get a job by ID."""
        query = "SELECT * FROM chat_jobs WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def get_for_owner(self, job_id: UUID, user_id: UUID) -> Optional[Job]:
        """Get a job by ID, only if it belongs to ``user_id``."""
        query = "SELECT * FROM chat_jobs WHERE id = $1 AND user_id = $2"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, job_id, user_id)
        return self._row_to_job(row) if row else None

    async def list_by_conversation(
        self,
        user_id: UUID,
        conversation_id: UUID,
        limit: int = 50,
    ) -> list[Job]:
        """List a user's jobs in one conversation, newest first."""
        query = """
            SELECT * FROM chat_jobs
            WHERE user_id = $1 AND conversation_id = $2
            ORDER BY created_at DESC
            LIMIT $3
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, user_id, conversation_id, limit)
        return [self._row_to_job(row) for row in rows]

    def _row_to_job(self, row) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            user_id=row["user_id"],
            conversation_id=row["conversation_id"],
            kind=JobKind(row["webhook_type"]),
            status=JobStatus(row["status"]),
            payload=_decode_jsonb(row["payload"]) or {},
            result=_decode_jsonb(row["result"]),
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            completed_at=row["completed_at"],
        )
