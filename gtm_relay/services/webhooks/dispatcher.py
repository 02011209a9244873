"""Outbound webhook dispatch with job bookkeeping."""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol
from uuid import UUID

import httpx
import structlog

from gtm_relay.core.errors import (
    ConfigurationError,
    NotFoundError,
    UpstreamError,
    WebhookTimeoutError,
)
from gtm_relay.jobs.models import AuthenticatedUser, Job, WebhookDestination
from gtm_relay.jobs.types import JobKind, JobStatus
from gtm_relay.services.webhooks.content import extract_content

logger = structlog.get_logger(__name__)

# Upstream body excerpt kept in job errors and logs
ERROR_BODY_LIMIT = 500


class DestinationResolver(Protocol):
    """Configuration lookup for webhook destinations."""

    async def resolve(self, kind: JobKind) -> Optional[WebhookDestination]: ...

    async def touch_last_used(self, destination_id: UUID) -> None: ...


class JobStore(Protocol):
    """Job persistence used by the dispatcher and callback receiver."""

    async def create(
        self,
        user_id: UUID,
        kind: JobKind,
        payload: dict[str, Any],
        conversation_id: Optional[UUID] = None,
    ) -> Job: ...

    async def mark_processing(self, job_id: UUID) -> Optional[Job]: ...

    async def get(self, job_id: UUID) -> Optional[Job]: ...

    async def get_for_owner(self, job_id: UUID, user_id: UUID) -> Optional[Job]: ...

    async def finalize(
        self,
        job_id: UUID,
        status: JobStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[Job]: ...


@dataclass
class DispatchResult:
    """Normalized outcome of a successful webhook call."""

    success: bool
    status: int
    content: str
    raw: Any
    job_id: Optional[UUID] = None

    def to_response(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "job_id": str(self.job_id) if self.job_id else None,
            "data": {"content": self.content, "format": "markdown", "raw": self.raw},
        }


def parse_body(response: httpx.Response) -> Any:
    """Response body as JSON, falling back to the raw text."""
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return text


class WebhookDispatcher:
    """Sends a job's payload to the workflow configured for its kind.

    No retries are attempted. A timeout leaves the job in ``processing``
    because the workflow may still call back; transport failures and
    non-2xx answers mark it ``failed``.
    """

    def __init__(
        self,
        destinations: DestinationResolver,
        jobs: JobStore,
        callback_url: Optional[str] = None,
        default_timeout_ms: int = 120_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._destinations = destinations
        self._jobs = jobs
        self._callback_url = callback_url
        self._default_timeout_ms = default_timeout_ms
        self._transport = transport

    async def dispatch(
        self,
        kind: JobKind,
        payload: Optional[dict[str, Any]],
        user: AuthenticatedUser,
        job_id: Optional[UUID] = None,
        conversation_id: Optional[UUID] = None,
    ) -> DispatchResult:
        destination = await self._resolve_destination(kind)
        job = await self._prepare_job(kind, payload or {}, user, job_id, conversation_id)

        outbound_payload = dict(payload or {})
        if job is not None:
            outbound_payload["jobId"] = str(job.id)
            if self._callback_url:
                outbound_payload["callbackUrl"] = self._callback_url

        body = {
            "type": kind.value,
            "user_id": str(user.id),
            "user_email": user.email,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": outbound_payload,
        }
        headers = {"Content-Type": "application/json", **destination.headers}
        timeout = (destination.timeout_ms or self._default_timeout_ms) / 1000

        # Request-scoped; picked up by log lines and error events from here on
        structlog.contextvars.bind_contextvars(kind=kind.value)
        if job is not None:
            structlog.contextvars.bind_contextvars(job_id=str(job.id))
        log = logger.bind(destination_id=str(destination.id))
        log.info("webhook_dispatching", timeout_seconds=timeout)

        try:
            response = await asyncio.wait_for(
                self._post(destination.url, body, headers, timeout), timeout=timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            log.warning("webhook_timeout", timeout_seconds=timeout)
            raise WebhookTimeoutError(
                f"Webhook for {kind.value} timed out after {timeout:g}s",
                timeout_seconds=timeout,
            ) from e
        except httpx.HTTPError as e:
            message = f"Webhook for {kind.value} could not be reached: {e}"
            log.warning("webhook_transport_error", error=str(e))
            await self._fail_job(job, message)
            raise UpstreamError(message) from e

        await self._destinations.touch_last_used(destination.id)
        raw = parse_body(response)

        if not response.is_success:
            excerpt = response.text[:ERROR_BODY_LIMIT]
            message = f"Webhook for {kind.value} returned {response.status_code}: {excerpt}"
            log.warning(
                "webhook_upstream_error",
                upstream_status=response.status_code,
                body=excerpt,
            )
            await self._fail_job(job, message)
            raise UpstreamError(message, upstream_status=response.status_code, body=raw)

        content = extract_content(raw)
        if job is not None and kind.is_synchronous:
            await self._jobs.finalize(job.id, JobStatus.COMPLETED, result=raw)

        log.info(
            "webhook_dispatched",
            status=response.status_code,
            content_length=len(content),
        )
        return DispatchResult(
            success=True,
            status=response.status_code,
            content=content,
            raw=raw,
            job_id=job.id if job else None,
        )

    async def _resolve_destination(self, kind: JobKind) -> WebhookDestination:
        destination = await self._destinations.resolve(kind)
        if destination is None:
            raise ConfigurationError(f"No enabled webhook found for type: {kind.value}")
        if not destination.is_usable:
            raise ConfigurationError(f"Webhook URL not configured for type: {kind.value}")
        return destination

    async def _prepare_job(
        self,
        kind: JobKind,
        payload: dict[str, Any],
        user: AuthenticatedUser,
        job_id: Optional[UUID],
        conversation_id: Optional[UUID],
    ) -> Optional[Job]:
        """Find or create the job this dispatch reports into, in ``processing``."""
        if job_id is None:
            if not kind.requires_job:
                return None
            job = await self._jobs.create(
                user.id, kind, payload, conversation_id=conversation_id
            )
        else:
            job = await self._jobs.get_for_owner(job_id, user.id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")

        if job.status.can_transition_to(JobStatus.PROCESSING):
            job = await self._jobs.mark_processing(job.id) or job
        return job

    async def _post(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            return await client.post(url, json=body, headers=headers)

    async def _fail_job(self, job: Optional[Job], message: str) -> None:
        if job is not None:
            await self._jobs.finalize(job.id, JobStatus.FAILED, error=message)
