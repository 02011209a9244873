"""Common schemas: error responses, health checks."""

from typing import Optional

from pydantic import BaseModel, Field


# ===========================================
# Health & Error
# ===========================================


class DependencyHealth(BaseModel):
    """Health status for a dependency."""

    status: str = Field(..., description="Dependency status (ok/error)")
    latency_ms: Optional[float] = Field(None, description="Response latency in ms")
    error: Optional[str] = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str = Field(..., description="Overall service status")
    database: DependencyHealth = Field(..., description="Postgres pool health")
    supabase: DependencyHealth = Field(..., description="Supabase health")
    latency_ms: dict[str, float] = Field(..., description="Latency per dependency")
    version: str = Field(..., description="Service version")
    git_sha: Optional[str] = Field(None, description="Build commit SHA")


class ErrorResponse(BaseModel):
    """Structured failure body for relay errors."""

    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Machine-readable error code")
    detail: str = Field(..., description="Human-readable message")
    retryable: bool = Field(
        False, description="Whether starting a fresh request could succeed"
    )
    upstream_status: Optional[int] = Field(
        None, description="Status returned by the workflow, for upstream errors"
    )
