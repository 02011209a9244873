"""Job system package."""

from gtm_relay.jobs.types import JobKind, JobStatus, LeadStage
from gtm_relay.jobs.models import (
    AuthenticatedUser,
    Job,
    LeadProcessingJob,
    WebhookDestination,
)
from gtm_relay.jobs.poller import JobPoller, JobSnapshot, PollState, decode_result

__all__ = [
    "JobKind",
    "JobStatus",
    "LeadStage",
    "AuthenticatedUser",
    "Job",
    "LeadProcessingJob",
    "WebhookDestination",
    "JobPoller",
    "JobSnapshot",
    "PollState",
    "decode_result",
]
