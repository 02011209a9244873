"""Repository for webhook destination configuration (``global_webhooks``)."""

import json
from typing import Any, Optional
from uuid import UUID

import structlog

from gtm_relay.jobs.models import WebhookDestination
from gtm_relay.jobs.types import JobKind

logger = structlog.get_logger(__name__)

# Columns an admin may change through the API
UPDATABLE_FIELDS = {"name", "url", "enabled", "timeout", "retry_attempts", "headers"}


class WebhookConfigRepository:
    """Reads and updates webhook destinations keyed by job kind."""

    def __init__(self, pool):
        self._pool = pool

    async def resolve(self, kind: JobKind) -> Optional[WebhookDestination]:
        """Return the enabled destination for ``kind``, if any."""
        query = """
            SELECT * FROM global_webhooks
            WHERE type = $1 AND enabled = true
            ORDER BY updated_at DESC
            LIMIT 1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, kind.value)
        return self._row_to_destination(row) if row else None

    async def touch_last_used(self, destination_id: UUID) -> None:
        """Record that a destination was just called."""
        query = "UPDATE global_webhooks SET last_used = now() WHERE id = $1"
        async with self._pool.acquire() as conn:
            await conn.execute(query, destination_id)

    async def mark_tested(self, destination_id: UUID) -> None:
        """Record a successful connectivity test."""
        query = "UPDATE global_webhooks SET last_tested = now() WHERE id = $1"
        async with self._pool.acquire() as conn:
            await conn.execute(query, destination_id)

    async def get(self, destination_id: UUID) -> Optional[WebhookDestination]:
        """Get a destination by ID."""
        query = "SELECT * FROM global_webhooks WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, destination_id)
        return self._row_to_destination(row) if row else None

    async def list_all(self) -> list[WebhookDestination]:
        """List every destination in creation order."""
        query = "SELECT * FROM global_webhooks ORDER BY created_at ASC"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query)
        return [self._row_to_destination(row) for row in rows]

    async def update(
        self, destination_id: UUID, changes: dict[str, Any]
    ) -> Optional[WebhookDestination]:
        """Apply a partial update; unknown fields are rejected.

        Returns None if the destination does not exist.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not changes:
            return await self.get(destination_id)

        assignments = []
        params: list[Any] = [destination_id]
        for column, value in sorted(changes.items()):
            params.append(json.dumps(value) if column == "headers" else value)
            cast = "::jsonb" if column == "headers" else ""
            assignments.append(f"{column} = ${len(params)}{cast}")

        query = f"""
            UPDATE global_webhooks SET
                {", ".join(assignments)},
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if not row:
            return None
        logger.info(
            "webhook_destination_updated",
            destination_id=str(destination_id),
            fields=sorted(changes),
        )
        return self._row_to_destination(row)

    def _row_to_destination(self, row) -> WebhookDestination:
        """Convert a database row to a WebhookDestination."""
        headers = row["headers"]
        if isinstance(headers, str):
            headers = json.loads(headers)
        return WebhookDestination(
            id=row["id"],
            name=row["name"],
            kind=JobKind(row["type"]),
            url=row["url"] or "",
            enabled=row["enabled"],
            timeout_ms=row["timeout"],
            retry_attempts=row["retry_attempts"],
            headers=headers or {},
            last_tested=row["last_tested"],
            last_used=row["last_used"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
