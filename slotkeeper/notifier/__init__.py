"""
SlotKeeper - Notifier Module

Operator-facing messages about moves, alerts and upcoming events.
"""

from .engine import Notifier, channel_from_settings

__all__ = ["Notifier", "channel_from_settings"]
