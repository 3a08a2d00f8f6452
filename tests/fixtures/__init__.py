"""
Test fixtures for deterministic testing.

This module provides:
- FakeTaskStore: in-memory task store with knobs for lost writes and outages
- RecordingChannel: notification channel that keeps every posted message
- schedule builders on a fixed calendar (see schedule.py)
"""

from .fake_store import DEFAULT_SCHEMA, FakeTaskStore


class RecordingChannel:
    def __init__(self, succeed: bool = True):
        self.messages: list[str] = []
        self.succeed = succeed

    async def post_message(self, text: str, **kwargs) -> dict:
        self.messages.append(text)
        if self.succeed:
            return {"status": "sent", "success": True}
        return {"status": "error", "success": False, "error": "channel down"}


__all__ = ["DEFAULT_SCHEMA", "FakeTaskStore", "RecordingChannel"]
