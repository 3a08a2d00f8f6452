"""Slack incoming-webhook notification channel."""

import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    async def post_message(self, text: str, **kwargs) -> dict: ...


class SlackChannel:
    """Delivers operator messages via a Slack incoming webhook.

    Slack answers a good post with a plain-text "ok"; any non-2xx status is
    reported as an error result, never raised.
    """

    def __init__(
        self,
        webhook_url: str,
        dry_run: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.dry_run = dry_run
        self.timeout = timeout
        self._transport = transport

    async def post_message(self, text: str, **kwargs) -> dict:
        """Post a message to the configured channel."""
        payload = {"text": text, **kwargs}

        if self.dry_run:
            logger.info("DRY RUN, Slack payload: %s", payload)
            return {"status": "dry_run", "success": True, "payload": payload}

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                return {"status": "sent", "success": True}
        except httpx.HTTPStatusError as e:
            logger.error("Slack HTTP error: %s", e)
            return {"status": "error", "success": False, "error": str(e)}
        except httpx.RequestError as e:
            logger.error("Slack request error: %s", e)
            return {"status": "error", "success": False, "error": str(e)}


class NullChannel:
    """Used when no webhook is configured: logs and drops every message."""

    async def post_message(self, text: str, **kwargs) -> dict:
        logger.info("Slack not configured, skipping post: %s", text)
        return {"status": "skipped", "success": False, "error": "Slack webhook not configured"}
