"""Connectivity test for configured webhook destinations."""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID

import httpx
import structlog

from gtm_relay.jobs.models import WebhookDestination

logger = structlog.get_logger(__name__)


class TestedMarker(Protocol):
    async def mark_tested(self, destination_id: UUID) -> None: ...


@dataclass
class ProbeResult:
    ok: bool
    status: Optional[int] = None
    error: Optional[str] = None
    latency_ms: Optional[float] = None


async def probe_destination(
    destination: WebhookDestination,
    store: TestedMarker,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeResult:
    """POST a test ping to ``destination``; stamp ``last_tested`` on 2xx only."""
    if not destination.url or not destination.url.strip():
        return ProbeResult(ok=False, error="Webhook URL is required for testing.")

    headers = {"Content-Type": "application/json", **destination.headers}
    body = {"test": True, "timestamp": datetime.now(timezone.utc).isoformat()}

    start = time.perf_counter()
    try:
        async with httpx.AsyncClient(
            timeout=destination.timeout_seconds, transport=transport
        ) as client:
            response = await client.post(destination.url, json=body, headers=headers)
    except httpx.TimeoutException:
        logger.warning("webhook_probe_timeout", destination_id=str(destination.id))
        return ProbeResult(
            ok=False, error=f"Timed out after {destination.timeout_seconds:g}s"
        )
    except httpx.HTTPError as e:
        logger.warning(
            "webhook_probe_failed", destination_id=str(destination.id), error=str(e)
        )
        return ProbeResult(ok=False, error=str(e))

    latency_ms = round((time.perf_counter() - start) * 1000, 1)
    if not response.is_success:
        logger.warning(
            "webhook_probe_failed",
            destination_id=str(destination.id),
            status=response.status_code,
        )
        return ProbeResult(
            ok=False,
            status=response.status_code,
            error=f"HTTP {response.status_code}: {response.reason_phrase}",
            latency_ms=latency_ms,
        )

    await store.mark_tested(destination.id)
    logger.info(
        "webhook_probe_ok",
        destination_id=str(destination.id),
        status=response.status_code,
        latency_ms=latency_ms,
    )
    return ProbeResult(ok=True, status=response.status_code, latency_ms=latency_ms)
