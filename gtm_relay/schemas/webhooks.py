"""Schemas for webhook dispatch, callbacks and destination admin."""

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from gtm_relay.jobs.models import WebhookDestination
from gtm_relay.jobs.types import JobKind, JobStatus


class InvokeWebhookRequest(BaseModel):
    """Dispatch ingress body."""

    kind: JobKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Workflow kind (also accepted as 'type')",
    )
    payload: dict[str, Any] = Field(default_factory=dict)
    job_id: Optional[UUID] = Field(
        None,
        validation_alias=AliasChoices("job_id", "jobId"),
        description="Existing job to report into; auto-created for chat when omitted",
    )
    conversation_id: Optional[UUID] = Field(
        None, validation_alias=AliasChoices("conversation_id", "conversationId")
    )


class DispatchData(BaseModel):
    content: str
    format: Literal["markdown"] = "markdown"
    raw: Any = None


class InvokeWebhookResponse(BaseModel):
    success: bool
    status: int
    job_id: Optional[UUID] = None
    data: DispatchData


class CallbackRequest(BaseModel):
    """Result push from the workflow system."""

    job_id: Optional[UUID] = Field(
        None, validation_alias=AliasChoices("job_id", "jobId")
    )
    status: Optional[JobStatus] = None
    result: Any = None
    error: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_must_be_terminal(cls, value: Optional[JobStatus]) -> Optional[JobStatus]:
        if value is not None and not value.is_terminal:
            raise ValueError("status must be completed or failed")
        return value


class CallbackResponse(BaseModel):
    success: bool = True
    job_id: UUID
    applied: bool = Field(..., description="False when the job was already terminal")
    status: JobStatus


class WebhookDestinationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    kind: JobKind
    url: str
    enabled: bool
    timeout_ms: int
    retry_attempts: int
    headers: dict[str, str]
    last_tested: Optional[datetime] = None
    last_used: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_destination(cls, destination: WebhookDestination) -> "WebhookDestinationResponse":
        return cls.model_validate(destination)


class WebhookDestinationUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    url: Optional[str] = None
    enabled: Optional[bool] = None
    timeout_ms: Optional[int] = Field(None, ge=1000, le=600_000)
    retry_attempts: Optional[int] = Field(None, ge=0, le=10)
    headers: Optional[dict[str, str]] = None

    def to_columns(self) -> dict[str, Any]:
        """Set fields mapped to ``global_webhooks`` column names."""
        changes = self.model_dump(exclude_unset=True)
        if "timeout_ms" in changes:
            changes["timeout"] = changes.pop("timeout_ms")
        return changes


class WebhookTestResponse(BaseModel):
    ok: bool
    status: Optional[int] = None
    error: Optional[str] = None
    latency_ms: Optional[float] = None
