"""HTTP client for reading job status from the relay service."""

import asyncio
from typing import Any, Optional
from uuid import UUID

import httpx
import structlog

from gtm_relay.core.errors import (
    JobFailedError,
    NotFoundError,
    PollTimeoutError,
    Unauthorized,
    UpstreamError,
)
from gtm_relay.jobs.poller import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_POLLING_SECONDS,
    JobPoller,
    JobSnapshot,
    PollState,
)

logger = structlog.get_logger(__name__)


class JobStatusClient:
    """Fetches job snapshots with a user's Supabase access token."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout
        self._transport = transport

    async def get_job(self, job_id: UUID) -> JobSnapshot:
        """GET /jobs/{job_id}.

        Raises:
            NotFoundError: job unknown or owned by someone else
            Unauthorized: token rejected
            UpstreamError: any other non-2xx answer or transport failure
        """
        url = f"{self.base_url}/jobs/{job_id}"
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to get job status: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Job {job_id} not found")
        if response.status_code == 401:
            raise Unauthorized("Session rejected while reading job status")
        if not response.is_success:
            raise UpstreamError(
                f"Failed to get job status: HTTP {response.status_code}",
                upstream_status=response.status_code,
                body=response.text,
            )
        return JobSnapshot.from_dict(response.json())


async def wait_for_job(
    client: JobStatusClient,
    job_id: UUID,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    max_polling_time: float = DEFAULT_MAX_POLLING_SECONDS,
) -> Any:
    """Poll until the job settles and return its decoded result.

    Raises:
        JobFailedError: the job failed or its status could not be read
        PollTimeoutError: the job was still running after ``max_polling_time``
    """
    outcome: asyncio.Future = asyncio.get_running_loop().create_future()
    poller: JobPoller

    def on_complete(result: Any) -> None:
        if not outcome.done():
            outcome.set_result(result)

    def on_error(message: str) -> None:
        if outcome.done():
            return
        if poller.state == PollState.TIMED_OUT:
            outcome.set_exception(PollTimeoutError(message))
        else:
            outcome.set_exception(JobFailedError(message))

    poller = JobPoller(
        client.get_job,
        on_complete=on_complete,
        on_error=on_error,
        interval=interval,
        max_polling_time=max_polling_time,
    )
    poller.watch(job_id)
    try:
        return await outcome
    finally:
        poller.close()
