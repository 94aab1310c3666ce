"""
Webhook Callbacks
=================

Delivery of terminal job outcomes to client webhooks.
"""

from screenshot_api.core.callbacks.sender import CallbackFailed, CallbackSender

__all__ = ["CallbackFailed", "CallbackSender"]
