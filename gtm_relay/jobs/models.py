"""Job system data models."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from gtm_relay.jobs.types import JobKind, JobStatus, LeadStage


@dataclass
class Job:
    """One asynchronous request/response cycle with an external workflow."""

    id: UUID
    user_id: UUID
    kind: JobKind
    status: JobStatus
    payload: dict[str, Any]

    # Groups related jobs (chat conversation, upload session)
    conversation_id: Optional[UUID] = None

    # Outcome (result only on completed, error only on failed)
    result: Any = None
    error: Optional[str] = None

    # Lifecycle timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


def normalize_headers(raw: Any) -> dict[str, str]:
    """Coerce configured header values to strings; None values are dropped.

    The headers column is free-form jsonb, so numbers and booleans show up.
    """
    headers: dict[str, str] = {}
    if not isinstance(raw, dict):
        return headers
    for name, value in raw.items():
        if value is None:
            continue
        if isinstance(value, bool):
            headers[str(name)] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            headers[str(name)] = json.dumps(value, separators=(",", ":"))
        else:
            headers[str(name)] = str(value)
    return headers


@dataclass
class WebhookDestination:
    """Externally configured endpoint a job kind is dispatched to."""

    id: UUID
    name: str
    kind: JobKind
    url: str
    enabled: bool = True
    timeout_ms: int = 120_000
    retry_attempts: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    last_tested: Optional[datetime] = None
    last_used: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.headers = normalize_headers(self.headers)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def is_usable(self) -> bool:
        """Enabled and pointing somewhere."""
        return self.enabled and bool(self.url and self.url.strip())


@dataclass
class LeadProcessingJob:
    """Batch job over the leads of one event, reported as aggregate counts."""

    id: UUID
    event_id: UUID
    stage: LeadStage
    status: JobStatus
    total_leads: int = 0
    processed_leads: int = 0
    failed_leads: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity resolved from a Supabase session token."""

    id: UUID
    email: Optional[str] = None
