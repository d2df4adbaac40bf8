"""
Outward-facing services.

Provides:
- actions: Moderation actions through the OneBot HTTP API
- api: Flask app for event intake and administration
"""

from floodguard.services.actions import (
    ActionDispatcher,
    DryRunDispatcher,
    OneBotDispatcher,
    OneBotError,
)

__all__ = [
    "ActionDispatcher",
    "DryRunDispatcher",
    "OneBotDispatcher",
    "OneBotError",
]
