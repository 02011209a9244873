"""Database repositories for the GTM webhook relay."""

from gtm_relay.repositories import jobs, lead_jobs, webhooks

__all__ = ["jobs", "lead_jobs", "webhooks"]
