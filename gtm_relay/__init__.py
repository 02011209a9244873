"""GTM Webhook Relay

Async job relay for the GTM assistant: dispatches requests to external
workflows, receives their callbacks, and lets clients poll job status.
"""

__version__ = "0.1.0"
