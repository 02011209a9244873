"""Schemas for job status reads and lead processing jobs."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gtm_relay.jobs.types import JobKind, JobStatus, LeadStage


class JobResponse(BaseModel):
    """Job status as seen by its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: JobKind
    status: JobStatus
    conversation_id: Optional[UUID] = None
    result: Any = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    count: int


class LeadJobCreateRequest(BaseModel):
    event_id: UUID
    stage: LeadStage
    total_leads: int = Field(0, ge=0)


class LeadJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    stage: LeadStage
    status: JobStatus
    total_leads: int
    processed_leads: int
    failed_leads: int
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeadCallbackRequest(BaseModel):
    """Aggregate outcome of a lead batch."""

    job_id: UUID
    processed: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    status: Optional[JobStatus] = None
    error: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_must_be_terminal(cls, value: Optional[JobStatus]) -> Optional[JobStatus]:
        if value is not None and not value.is_terminal:
            raise ValueError("status must be completed or failed")
        return value
