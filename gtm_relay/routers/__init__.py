"""API routers for the GTM webhook relay."""

from gtm_relay.routers import (
    admin_webhooks,
    health,
    jobs,
    lead_jobs,
    metrics,
    webhooks,
)

__all__ = ["admin_webhooks", "health", "jobs", "lead_jobs", "metrics", "webhooks"]
