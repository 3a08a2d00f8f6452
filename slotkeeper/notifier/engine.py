"""
Notifier - operator message delivery for the scheduling passes.

A failed post is logged and counted, never raised: announcing is the last
step of a pass and must not turn a completed move into a failed pass.
"""

import logging

from slotkeeper.config import SlackSettings
from slotkeeper.observability import metrics

from .channels import NotificationChannel, NullChannel, SlackChannel

logger = logging.getLogger(__name__)


def channel_from_settings(settings: SlackSettings) -> NotificationChannel:
    if settings.is_configured:
        return SlackChannel(settings.webhook_url, dry_run=settings.dry_run)
    logger.warning("No Slack webhook configured, operator messages will only be logged")
    return NullChannel()


class Notifier:
    def __init__(self, channel: NotificationChannel):
        self.channel = channel
        self.sent: list[str] = []

    async def announce(self, text: str | None) -> bool:
        if not text:
            return False
        try:
            result = await self.channel.post_message(text)
        except Exception as e:
            logger.error(f"Notification channel raised: {e}", exc_info=True)
            return False
        if result.get("success"):
            metrics.alerts_sent.inc()
            self.sent.append(text)
            # Bound the in-memory history
            del self.sent[:-100]
            return True
        logger.warning(f"Operator message not delivered: {result.get('error')}")
        return False
