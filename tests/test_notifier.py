"""
Tests for operator notifications.

Covers:
- SlackChannel result dicts (sent, dry run, HTTP and network errors)
- NullChannel when no webhook is configured
- Notifier delivery bookkeeping, never raising
- Message wording
"""

import asyncio
import json
from types import SimpleNamespace

import httpx

from slotkeeper.config import SlackSettings
from slotkeeper.models import Interval, ItemType, Slot
from slotkeeper.notifier import Notifier, channel_from_settings, messages
from slotkeeper.notifier.channels import NullChannel, SlackChannel
from slotkeeper.observability import metrics
from tests.fixtures import RecordingChannel
from tests.fixtures.schedule import MONDAY, TUESDAY, at, item

WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"


def slack_with(handler) -> SlackChannel:
    return SlackChannel(WEBHOOK, transport=httpx.MockTransport(handler))


# =============================================================================
# SLACK CHANNEL
# =============================================================================


class TestSlackChannel:
    def test_sends_text_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="ok")

        result = asyncio.run(slack_with(handler).post_message("hello"))

        assert result == {"status": "sent", "success": True}
        assert str(seen[0].url) == WEBHOOK
        assert json.loads(seen[0].content) == {"text": "hello"}

    def test_dry_run_never_posts(self):
        def handler(request):
            raise AssertionError("dry run must not post")

        channel = SlackChannel(WEBHOOK, dry_run=True, transport=httpx.MockTransport(handler))
        result = asyncio.run(channel.post_message("hello"))

        assert result["status"] == "dry_run"
        assert result["success"] is True
        assert result["payload"] == {"text": "hello"}

    def test_http_error_reported(self):
        result = asyncio.run(
            slack_with(lambda request: httpx.Response(500, text="boom")).post_message("hi")
        )

        assert result["success"] is False
        assert result["status"] == "error"
        assert "500" in result["error"]

    def test_network_error_reported(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        result = asyncio.run(slack_with(handler).post_message("hi"))

        assert result["success"] is False
        assert "unreachable" in result["error"]

    def test_null_channel_skips(self):
        result = asyncio.run(NullChannel().post_message("hi"))

        assert result["status"] == "skipped"
        assert result["success"] is False

    def test_channel_from_settings(self):
        assert isinstance(channel_from_settings(SlackSettings()), NullChannel)

        channel = channel_from_settings(SlackSettings(webhook_url=WEBHOOK, dry_run=True))
        assert isinstance(channel, SlackChannel)
        assert channel.dry_run is True


# =============================================================================
# NOTIFIER
# =============================================================================


class TestNotifier:
    def test_delivered_message_recorded(self):
        channel = RecordingChannel()
        notifier = Notifier(channel)
        before = metrics.alerts_sent.value

        assert asyncio.run(notifier.announce("moved")) is True

        assert channel.messages == ["moved"]
        assert notifier.sent == ["moved"]
        assert metrics.alerts_sent.value == before + 1

    def test_failed_delivery_returns_false(self):
        notifier = Notifier(RecordingChannel(succeed=False))

        assert asyncio.run(notifier.announce("moved")) is False
        assert notifier.sent == []

    def test_raising_channel_swallowed(self):
        class Exploding:
            async def post_message(self, text, **kwargs):
                raise RuntimeError("socket closed")

        assert asyncio.run(Notifier(Exploding()).announce("moved")) is False

    def test_empty_message_not_sent(self):
        channel = RecordingChannel()

        assert asyncio.run(Notifier(channel).announce("")) is False
        assert channel.messages == []

    def test_history_bounded(self):
        notifier = Notifier(RecordingChannel())

        async def flood():
            for i in range(105):
                await notifier.announce(f"m{i}")

        asyncio.run(flood())

        assert len(notifier.sent) == 100
        assert notifier.sent[0] == "m5"


# =============================================================================
# MESSAGES
# =============================================================================


def move(item_id, title, start):
    slot = Slot(start.date(), Interval(start, start))
    return SimpleNamespace(item=item(item_id, title=title), slot=slot)


class TestMessages:
    def test_format_time(self):
        assert messages.format_time(at(MONDAY, 9, 5)) == "9:05 AM"
        assert messages.format_time(at(MONDAY, 12)) == "12:00 PM"
        assert messages.format_time(at(MONDAY, 16, 30)) == "4:30 PM"

    def test_format_slot(self):
        assert messages.format_slot(at(TUESDAY, 9, 15)) == "Tue, Oct 20, 9:15 AM"
        assert messages.format_slot(TUESDAY) == "Tue, Oct 20"

    def test_batched_moves(self):
        moves = [
            move("a", "Report", at(MONDAY, 9)),
            move("b", "Email", at(MONDAY, 10)),
        ]

        assert messages.conflict_resolution(moves) == (
            "Resolved 2 scheduling conflicts, Sir:\n"
            "• Report → Mon, Oct 19, 9:00 AM\n"
            "• Email → Mon, Oct 19, 10:00 AM"
        )

    def test_gap_filled(self):
        slot = Slot(MONDAY, Interval(at(MONDAY, 9, 20), at(MONDAY, 9, 40)))

        assert messages.gap_filled(item("x", title="Inbox"), slot) == (
            'Moved "Inbox" to 9:20 AM, Sir.'
        )

    def test_protected_on_pto(self):
        text = messages.protected_on_pto(
            item("m", at(MONDAY, 10), 30, item_type=ItemType.MEETING, title="1:1"), MONDAY
        )

        assert text.startswith('Sir, "1:1" (Meeting) is scheduled on 2026-10-19')

    def test_single_upcoming_event_singular_minute(self):
        event = SimpleNamespace(
            title="Standup", item_type=ItemType.MEETING, minutes_until=1, start=at(MONDAY, 9, 1)
        )

        assert messages.upcoming_events([event]) == (
            "*Upcoming Meeting*\n\n*Standup* is starting in 1 minute at 9:01 AM"
        )
