"""Unit tests for lead processing job endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from gtm_relay.jobs.models import LeadProcessingJob
from gtm_relay.jobs.types import JobStatus, LeadStage
from gtm_relay.routers import lead_jobs


def lead_job(status=JobStatus.PROCESSING, **overrides) -> LeadProcessingJob:
    fields = {
        "id": uuid4(),
        "event_id": uuid4(),
        "stage": LeadStage.VALIDATE,
        "status": status,
        "total_leads": 25,
    }
    fields.update(overrides)
    return LeadProcessingJob(**fields)


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.create = AsyncMock()
    repo.get = AsyncMock()
    repo.get_latest = AsyncMock()
    repo.finalize = AsyncMock()
    return repo


@pytest.fixture
def client(app_factory, repo):
    app = app_factory(lead_jobs.router)
    with patch.object(lead_jobs, "_get_repository", return_value=repo):
        yield TestClient(app, raise_server_exceptions=False)


class TestCreateLeadJob:
    def test_create(self, client, repo, admin_headers):
        job = lead_job()
        repo.create.return_value = job

        response = client.post(
            "/lead-jobs",
            json={"event_id": str(job.event_id), "stage": "validate", "total_leads": 25},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["status"] == "processing"
        repo.create.assert_awaited_once_with(job.event_id, LeadStage.VALIDATE, 25)

    def test_requires_admin(self, client):
        response = client.post(
            "/lead-jobs", json={"event_id": str(uuid4()), "stage": "validate"}
        )
        assert response.status_code == 401


class TestLatestLeadJob:
    def test_latest(self, client, repo, admin_headers):
        job = lead_job(JobStatus.COMPLETED, processed_leads=25)
        repo.get_latest.return_value = job

        response = client.get(
            "/lead-jobs/latest",
            params={"event_id": str(job.event_id), "stage": "validate"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["processed_leads"] == 25

    def test_none_yet(self, client, repo, admin_headers):
        repo.get_latest.return_value = None

        response = client.get(
            "/lead-jobs/latest",
            params={"event_id": str(uuid4()), "stage": "enrich"},
            headers=admin_headers,
        )

        assert response.status_code == 404


class TestLeadJobCallback:
    @pytest.fixture(autouse=True)
    def callback_secret(self):
        settings = SimpleNamespace(n8n_api_key="lead-secret")
        with patch("gtm_relay.deps.security.get_settings", return_value=settings):
            yield

    def test_records_counts(self, client, repo):
        job = lead_job()
        repo.get.return_value = job
        repo.finalize.return_value = lead_job(
            JobStatus.COMPLETED, id=job.id, processed_leads=20, failed_leads=5
        )

        response = client.post(
            "/lead-jobs/callback",
            json={"job_id": str(job.id), "processed": 20, "failed": 5},
            headers={"X-N8N-API-Key": "lead-secret"},
        )

        assert response.status_code == 200
        assert response.json()["applied"] is True
        repo.finalize.assert_awaited_once_with(
            job.id, JobStatus.COMPLETED, processed=20, failed=5, error_message=None
        )

    def test_duplicate_ignored(self, client, repo):
        job = lead_job(JobStatus.COMPLETED)
        repo.get.return_value = job

        response = client.post(
            "/lead-jobs/callback",
            json={"job_id": str(job.id), "processed": 1, "failed": 0},
            headers={"X-N8N-API-Key": "lead-secret"},
        )

        assert response.status_code == 200
        assert response.json()["applied"] is False
        repo.finalize.assert_not_called()

    def test_wrong_secret(self, client, repo):
        response = client.post(
            "/lead-jobs/callback",
            json={"job_id": str(uuid4()), "processed": 1, "failed": 0},
            headers={"X-N8N-API-Key": "nope"},
        )

        assert response.status_code == 401
        repo.get.assert_not_called()
