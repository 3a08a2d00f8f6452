"""
SlotKeeper - Notification Channels

Channel handlers for delivering operator messages.
"""

from .slack import NotificationChannel, NullChannel, SlackChannel

__all__ = ["NotificationChannel", "NullChannel", "SlackChannel"]
