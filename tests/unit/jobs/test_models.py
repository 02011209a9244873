"""Tests for job system models."""

from datetime import datetime
from uuid import uuid4

import pytest

from gtm_relay.jobs.models import (
    AuthenticatedUser,
    Job,
    LeadProcessingJob,
    WebhookDestination,
)
from gtm_relay.jobs.types import JobKind, JobStatus, LeadStage


class TestJob:
    def test_job_defaults(self):
        job = Job(
            id=uuid4(),
            user_id=uuid4(),
            kind=JobKind.CHAT,
            status=JobStatus.PENDING,
            payload={"text": "hi"},
        )
        assert job.result is None
        assert job.error is None
        assert job.completed_at is None
        assert job.conversation_id is None
        assert isinstance(job.created_at, datetime)
        assert job.created_at.tzinfo is not None

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (JobStatus.PENDING, False),
            (JobStatus.PROCESSING, False),
            (JobStatus.COMPLETED, True),
            (JobStatus.FAILED, True),
        ],
    )
    def test_is_terminal_follows_status(self, status, terminal):
        job = Job(
            id=uuid4(), user_id=uuid4(), kind=JobKind.CHAT, status=status, payload={}
        )
        assert job.is_terminal is terminal


class TestWebhookDestination:
    def test_timeout_seconds(self):
        dest = WebhookDestination(
            id=uuid4(), name="chat", kind=JobKind.CHAT, url="https://x", timeout_ms=2500
        )
        assert dest.timeout_seconds == 2.5

    def test_default_timeout_is_two_minutes(self):
        dest = WebhookDestination(id=uuid4(), name="chat", kind=JobKind.CHAT, url="https://x")
        assert dest.timeout_seconds == 120

    @pytest.mark.parametrize(
        "enabled,url,usable",
        [
            (True, "https://n8n.example.com/webhook/abc", True),
            (False, "https://n8n.example.com/webhook/abc", False),
            (True, "", False),
            (True, "   ", False),
        ],
    )
    def test_is_usable(self, enabled, url, usable):
        dest = WebhookDestination(
            id=uuid4(), name="chat", kind=JobKind.CHAT, url=url, enabled=enabled
        )
        assert dest.is_usable is usable


class TestLeadProcessingJob:
    def test_counts_default_to_zero(self):
        job = LeadProcessingJob(
            id=uuid4(),
            event_id=uuid4(),
            stage=LeadStage.VALIDATE,
            status=JobStatus.PROCESSING,
        )
        assert job.total_leads == 0
        assert job.processed_leads == 0
        assert job.failed_leads == 0


class TestAuthenticatedUser:
    def test_is_hashable(self):
        user_id = uuid4()
        assert AuthenticatedUser(id=user_id) == AuthenticatedUser(id=user_id)
        assert len({AuthenticatedUser(id=user_id), AuthenticatedUser(id=user_id)}) == 1


class TestNormalizeHeaders:
    def test_non_string_values_coerced(self):
        from gtm_relay.jobs.models import normalize_headers

        headers = normalize_headers(
            {"X-Retry": 3, "X-Debug": True, "X-Ratio": 0.5, "X-Meta": {"a": 1}, "X-Skip": None}
        )

        assert headers == {
            "X-Retry": "3",
            "X-Debug": "true",
            "X-Ratio": "0.5",
            "X-Meta": '{"a":1}',
        }

    def test_non_object_column_yields_no_headers(self):
        from gtm_relay.jobs.models import normalize_headers

        assert normalize_headers(None) == {}
        assert normalize_headers(["X-Key", "abc"]) == {}

    def test_destination_normalizes_on_construction(self):
        dest = WebhookDestination(
            id=uuid4(),
            name="chat",
            kind=JobKind.CHAT,
            url="https://n8n.example.com/webhook/chat",
            headers={"X-Retry": 3},
        )
        assert dest.headers == {"X-Retry": "3"}
