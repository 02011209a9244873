"""Client-side job status poller.

Watches one job at a time and reports exactly one terminal outcome per
watched job id. Checks are serialized: a tick that fires while the previous
check is still outstanding is skipped. Replacing the watched job id (or
closing the poller) tears down the loop and discards any result still in
flight for the old id.
"""

import asyncio
import inspect
import json
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from gtm_relay.jobs.types import JobStatus

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_POLLING_SECONDS = 180.0
TIMEOUT_MESSAGE = "Job timed out"


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class JobSnapshot:
    """The fields of a job the poller needs."""

    id: UUID
    status: JobStatus
    result: Any = None
    error: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobSnapshot":
        completed_at = data.get("completed_at")
        if isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at.replace("Z", "+00:00"))
        return cls(
            id=UUID(str(data["id"])),
            status=JobStatus(data["status"]),
            result=data.get("result"),
            error=data.get("error"),
            completed_at=completed_at,
        )


JobFetcher = Callable[[UUID], Awaitable[JobSnapshot]]
ResultCallback = Callable[[Any], Any]
ErrorCallback = Callable[[str], Any]


def is_completed(snapshot: JobSnapshot) -> bool:
    """Completed by status, or by carrying both a completion time and a result."""
    if snapshot.status == JobStatus.COMPLETED:
        return True
    has_result = snapshot.result is not None and snapshot.result != ""
    return snapshot.completed_at is not None and has_result


def decode_result(value: Any) -> Any:
    """Unwrap a result that may be JSON serialized inside a JSON string.

    At most two decode passes; the last successfully decoded value is kept,
    so a plain string comes back unchanged.
    """
    for _ in range(2):
        if not isinstance(value, str):
            break
        try:
            value = json.loads(value)
        except ValueError:
            break
    return value


class JobPoller:
    """Polls a job until it is terminal or the time ceiling passes."""

    def __init__(
        self,
        fetch: JobFetcher,
        on_complete: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_polling_time: float = DEFAULT_MAX_POLLING_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._on_complete = on_complete
        self._on_error = on_error
        self.interval = interval
        self.max_polling_time = max_polling_time
        self._clock = clock

        self.state = PollState.IDLE
        self.job_id: Optional[UUID] = None
        self.job: Optional[JobSnapshot] = None
        self.checks = 0

        # Per-job state, reset on every watch()
        self._generation = 0
        self._started_at = 0.0
        self._settled = False
        self._in_flight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None

    def watch(self, job_id: Optional[UUID]) -> None:
        """Start watching ``job_id``, abandoning whatever was watched before.

        Must be called from a running event loop. ``None`` returns to idle.
        """
        self._teardown()
        self._generation += 1
        self._settled = False
        self.job = None
        self.checks = 0
        self.job_id = job_id

        if job_id is None:
            self.state = PollState.IDLE
            return

        self.state = PollState.POLLING
        self._started_at = self._clock()
        self._loop_task = asyncio.get_running_loop().create_task(
            self._run(self._generation, job_id)
        )

    def close(self) -> None:
        """Stop polling for good (owner going away)."""
        self._teardown()
        self._generation += 1
        if self.state == PollState.POLLING:
            self.state = PollState.IDLE

    async def _run(self, generation: int, job_id: UUID) -> None:
        while self._is_live(generation):
            if self._clock() - self._started_at > self.max_polling_time:
                await self._settle(generation, PollState.TIMED_OUT, TIMEOUT_MESSAGE)
                return
            if self._in_flight is None or self._in_flight.done():
                self._in_flight = asyncio.create_task(self._check(generation, job_id))
            await asyncio.sleep(self.interval)

    async def _check(self, generation: int, job_id: UUID) -> None:
        self.checks += 1
        try:
            snapshot = await self._fetch(job_id)
        except Exception as e:
            if self._is_live(generation):
                logger.warning("job_poll_failed", job_id=str(job_id), error=str(e))
                await self._settle(
                    generation, PollState.FAILED, str(e) or "Failed to get job status"
                )
            return

        if not self._is_live(generation):
            return
        self.job = snapshot

        if is_completed(snapshot):
            await self._settle(
                generation, PollState.COMPLETED, decode_result(snapshot.result)
            )
        elif snapshot.status == JobStatus.FAILED:
            await self._settle(generation, PollState.FAILED, snapshot.error or "Job failed")
        elif self._clock() - self._started_at > self.max_polling_time:
            await self._settle(generation, PollState.TIMED_OUT, TIMEOUT_MESSAGE)

    async def _settle(self, generation: int, state: PollState, value: Any) -> None:
        """Record the terminal state and fire the matching callback once."""
        if generation != self._generation or self._settled:
            return
        self._settled = True
        self.state = state
        self._stop_loop()
        logger.info("job_poll_settled", job_id=str(self.job_id), state=state.value)

        callback = self._on_complete if state == PollState.COMPLETED else self._on_error
        if callback is None:
            return
        try:
            outcome = callback(value)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            # Runs inside the poll task; nobody awaits it to see the error
            logger.exception(
                "job_poll_callback_failed", job_id=str(self.job_id), state=state.value
            )

    def _is_live(self, generation: int) -> bool:
        return (
            generation == self._generation
            and not self._settled
            and self.state == PollState.POLLING
        )

    def _stop_loop(self) -> None:
        task = self._loop_task
        self._loop_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _teardown(self) -> None:
        self._stop_loop()
        task = self._in_flight
        self._in_flight = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
