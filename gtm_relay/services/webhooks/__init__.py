"""Webhook dispatch, callback handling and destination probing."""

from gtm_relay.services.webhooks.callbacks import (
    CallbackOutcome,
    CallbackReceiver,
    LeadCallbackReceiver,
)
from gtm_relay.services.webhooks.content import extract_content
from gtm_relay.services.webhooks.dispatcher import DispatchResult, WebhookDispatcher
from gtm_relay.services.webhooks.probe import ProbeResult, probe_destination

__all__ = [
    "CallbackOutcome",
    "CallbackReceiver",
    "LeadCallbackReceiver",
    "extract_content",
    "DispatchResult",
    "WebhookDispatcher",
    "ProbeResult",
    "probe_destination",
]
