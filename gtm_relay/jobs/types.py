"""Job system type definitions."""

from enum import Enum


class JobKind(str, Enum):
    """External workflow a job is dispatched to.

    Stored in the ``webhook_type`` column and used as the lookup key for
    webhook destinations.
    """

    CHAT = "chat"
    FILE_UPLOAD = "file_upload"
    GOOGLE_DRIVE = "google_drive"

    @property
    def requires_job(self) -> bool:
        """Whether dispatch auto-creates a job when the caller omits one."""
        return self is JobKind.CHAT

    @property
    def is_synchronous(self) -> bool:
        """Whether the webhook answers inline instead of calling back."""
        return not self.requires_job


class JobStatus(str, Enum):
    """Job lifecycle statuses.

    Transitions are forward-only: pending -> processing -> completed|failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Check whether moving to ``target`` keeps the status monotonic."""
        if self.is_terminal:
            return False
        return _STATUS_RANK[target] > _STATUS_RANK[self]


_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


class LeadStage(str, Enum):
    """Stages of the lead import pipeline tracked by lead processing jobs."""

    VALIDATE = "validate"
    CHECK_SALESFORCE = "check_salesforce"
    ENRICH = "enrich"
    SYNC = "sync"
