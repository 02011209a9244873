"""Unit tests for job status endpoints."""

from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from gtm_relay.deps.security import get_current_user
from gtm_relay.jobs.types import JobKind, JobStatus
from gtm_relay.routers import jobs


@pytest.fixture
def client(app_factory, user, job_store):
    app = app_factory(jobs.router)
    app.dependency_overrides[get_current_user] = lambda: user
    with patch.object(jobs, "_get_repository", return_value=job_store):
        yield TestClient(app, raise_server_exceptions=False)


class TestGetJobStatus:
    @pytest.mark.asyncio
    async def test_pending_job(self, client, user, job_store):
        job = await job_store.create(user.id, JobKind.CHAT, {"message": "hi"})

        response = client.get(f"/jobs/{job.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(job.id)
        assert data["kind"] == "chat"
        assert data["status"] == "pending"
        assert data["result"] is None
        assert data["completed_at"] is None

    @pytest.mark.asyncio
    async def test_completed_job_exposes_result(self, client, user, job_store):
        job = await job_store.create(user.id, JobKind.CHAT, {})
        await job_store.finalize(job.id, JobStatus.COMPLETED, result={"output": "hello back"})

        data = client.get(f"/jobs/{job.id}").json()

        assert data["status"] == "completed"
        assert data["result"] == {"output": "hello back"}
        assert data["completed_at"] is not None

    @pytest.mark.asyncio
    async def test_failed_job_exposes_error(self, client, user, job_store):
        job = await job_store.create(user.id, JobKind.CHAT, {})
        await job_store.finalize(job.id, JobStatus.FAILED, error="Workflow exploded")

        data = client.get(f"/jobs/{job.id}").json()

        assert data["status"] == "failed"
        assert data["error"] == "Workflow exploded"

    @pytest.mark.asyncio
    async def test_other_users_job_is_not_found(self, client, job_store):
        job = await job_store.create(uuid4(), JobKind.CHAT, {})

        response = client.get(f"/jobs/{job.id}")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_job(self, client):
        assert client.get(f"/jobs/{uuid4()}").status_code == 404

    def test_invalid_id(self, client):
        assert client.get("/jobs/not-a-uuid").status_code == 422


class TestListJobs:
    @pytest.mark.asyncio
    async def test_lists_conversation_jobs(self, client, user, job_store):
        conversation_id = uuid4()
        await job_store.create(user.id, JobKind.CHAT, {}, conversation_id=conversation_id)
        await job_store.create(user.id, JobKind.CHAT, {}, conversation_id=conversation_id)
        await job_store.create(user.id, JobKind.CHAT, {}, conversation_id=uuid4())

        response = client.get("/jobs", params={"conversation_id": str(conversation_id)})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert all(j["conversation_id"] == str(conversation_id) for j in data["jobs"])

    def test_conversation_required(self, client):
        assert client.get("/jobs").status_code == 422
