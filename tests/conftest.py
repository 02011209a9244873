"""Root conftest for test suite.

Shared fakes for the job store and webhook destinations, plus the mocked
asyncpg pool used by repository tests. Slow tests are skipped unless
requested with ``-m slow``.
"""

import os
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

# Settings are read from the environment; keep tests away from real services
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from gtm_relay.jobs.models import AuthenticatedUser, Job, WebhookDestination  # noqa: E402
from gtm_relay.jobs.types import JobKind, JobStatus  # noqa: E402


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless explicitly requested."""
    markexpr = config.getoption("-m", default="")
    skip_slow = pytest.mark.skip(
        reason="slow tests skipped by default. Run with: pytest -m slow"
    )
    for item in items:
        if "slow" in item.keywords and "slow" not in markexpr:
            item.add_marker(skip_slow)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryJobStore:
    """Dict-backed stand-in for JobRepository with the same write guards."""

    def __init__(self):
        self.jobs: dict[UUID, Job] = {}
        self.created: list[UUID] = []

    async def create(
        self,
        user_id: UUID,
        kind: JobKind,
        payload: dict[str, Any],
        conversation_id: Optional[UUID] = None,
    ) -> Job:
        job = Job(
            id=uuid4(),
            user_id=user_id,
            kind=kind,
            status=JobStatus.PENDING,
            payload=dict(payload),
            conversation_id=conversation_id,
        )
        self.jobs[job.id] = job
        self.created.append(job.id)
        return replace(job)

    async def mark_processing(self, job_id: UUID) -> Optional[Job]:
        job = self.jobs.get(job_id)
        if job is None or not job.status.can_transition_to(JobStatus.PROCESSING):
            return None
        job.status = JobStatus.PROCESSING
        job.updated_at = _now()
        return replace(job)

    async def get(self, job_id: UUID) -> Optional[Job]:
        job = self.jobs.get(job_id)
        return replace(job) if job else None

    async def get_for_owner(self, job_id: UUID, user_id: UUID) -> Optional[Job]:
        job = self.jobs.get(job_id)
        if job is None or job.user_id != user_id:
            return None
        return replace(job)

    async def finalize(
        self,
        job_id: UUID,
        status: JobStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        job = self.jobs.get(job_id)
        if job is None or not job.status.can_transition_to(status):
            return None
        job.status = status
        job.result = result if status == JobStatus.COMPLETED else None
        job.error = error if status == JobStatus.FAILED else None
        job.completed_at = job.updated_at = _now()
        return replace(job)

    async def list_by_conversation(
        self, user_id: UUID, conversation_id: UUID, limit: int = 50
    ) -> list[Job]:
        jobs = [
            replace(j)
            for j in self.jobs.values()
            if j.user_id == user_id and j.conversation_id == conversation_id
        ]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)[:limit]


class FakeDestinations:
    """Destination resolver keyed by kind, recording side effects."""

    def __init__(self, *destinations: WebhookDestination):
        self.by_kind = {d.kind: d for d in destinations}
        self.touched: list[UUID] = []
        self.tested: list[UUID] = []

    async def resolve(self, kind: JobKind) -> Optional[WebhookDestination]:
        return self.by_kind.get(kind)

    async def touch_last_used(self, destination_id: UUID) -> None:
        self.touched.append(destination_id)

    async def mark_tested(self, destination_id: UUID) -> None:
        self.tested.append(destination_id)


def make_destination(
    kind: JobKind = JobKind.CHAT,
    url: str = "https://n8n.example.com/webhook/chat",
    **overrides: Any,
) -> WebhookDestination:
    fields: dict[str, Any] = {
        "id": uuid4(),
        "name": f"{kind.value} workflow",
        "kind": kind,
        "url": url,
        "headers": {"X-Workflow-Key": "wf-key"},
        "timeout_ms": 5_000,
    }
    fields.update(overrides)
    return WebhookDestination(**fields)


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), email="rep@example.com")


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def destination_factory():
    return make_destination


@pytest.fixture
def destinations_factory():
    return FakeDestinations


@pytest.fixture
def mock_pool():
    """Mock asyncpg pool; returns (pool, conn)."""
    pool = MagicMock()
    conn = AsyncMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=None)
    return pool, conn


@pytest.fixture
def app_factory():
    """Bare FastAPI app with the given routers and relay error handlers."""
    from fastapi import FastAPI

    from gtm_relay.core.errors import add_exception_handlers

    def build(*routers) -> FastAPI:
        app = FastAPI()
        for router in routers:
            app.include_router(router)
        add_exception_handlers(app)
        return app

    return build


@pytest.fixture
def admin_headers():
    """Headers with admin token."""
    return {"X-Admin-Token": os.environ["ADMIN_TOKEN"]}
