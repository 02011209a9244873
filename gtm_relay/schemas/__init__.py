"""Pydantic models for request/response validation."""

from gtm_relay.schemas.common import DependencyHealth, ErrorResponse, HealthResponse
from gtm_relay.schemas.jobs import (
    JobListResponse,
    JobResponse,
    LeadCallbackRequest,
    LeadJobCreateRequest,
    LeadJobResponse,
)
from gtm_relay.schemas.webhooks import (
    CallbackRequest,
    CallbackResponse,
    DispatchData,
    InvokeWebhookRequest,
    InvokeWebhookResponse,
    WebhookDestinationResponse,
    WebhookDestinationUpdate,
    WebhookTestResponse,
)

__all__ = [
    "DependencyHealth",
    "ErrorResponse",
    "HealthResponse",
    "JobListResponse",
    "JobResponse",
    "LeadCallbackRequest",
    "LeadJobCreateRequest",
    "LeadJobResponse",
    "CallbackRequest",
    "CallbackResponse",
    "DispatchData",
    "InvokeWebhookRequest",
    "InvokeWebhookResponse",
    "WebhookDestinationResponse",
    "WebhookDestinationUpdate",
    "WebhookTestResponse",
]
