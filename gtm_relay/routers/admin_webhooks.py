"""Admin endpoints for webhook destinations."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from gtm_relay.core.errors import NotFoundError
from gtm_relay.deps.security import require_admin_token
from gtm_relay.repositories.webhooks import WebhookConfigRepository
from gtm_relay.schemas import (
    WebhookDestinationResponse,
    WebhookDestinationUpdate,
    WebhookTestResponse,
)
from gtm_relay.services.webhooks.probe import probe_destination

router = APIRouter(
    prefix="/admin/webhooks",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


def _get_repository() -> WebhookConfigRepository:
    """Get repository instance."""
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return WebhookConfigRepository(_db_pool)


@router.get("", response_model=list[WebhookDestinationResponse])
async def list_destinations() -> list[WebhookDestinationResponse]:
    """List all configured destinations, enabled or not."""
    repo = _get_repository()
    destinations = await repo.list_all()
    return [WebhookDestinationResponse.from_destination(d) for d in destinations]


@router.patch("/{destination_id}", response_model=WebhookDestinationResponse)
async def update_destination(
    destination_id: UUID,
    request: WebhookDestinationUpdate,
) -> WebhookDestinationResponse:
    """Change url, headers, timeout, enabled flag, name or retry_attempts."""
    repo = _get_repository()
    updated = await repo.update(destination_id, request.to_columns())
    if updated is None:
        raise NotFoundError(f"Webhook {destination_id} not found")
    return WebhookDestinationResponse.from_destination(updated)


@router.post("/{destination_id}/test", response_model=WebhookTestResponse)
async def test_destination(destination_id: UUID) -> WebhookTestResponse:
    """
    Send a test ping to a destination.

    ``last_tested`` is stamped only when the destination answers 2xx.
    """
    repo = _get_repository()
    destination = await repo.get(destination_id)
    if destination is None:
        raise NotFoundError(f"Webhook {destination_id} not found")

    result = await probe_destination(destination, repo)
    return WebhookTestResponse(
        ok=result.ok,
        status=result.status,
        error=result.error,
        latency_ms=result.latency_ms,
    )
