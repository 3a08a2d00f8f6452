"""
Tests for write verification and the relocator.

Covers:
- Start comparison with tolerance (timed) and by date (date-only)
- Read-back failures reported as unverified
- Relocator outcomes: moved, unverified, no slot, failed
"""

import asyncio
from datetime import timedelta

from slotkeeper.models import Slot
from slotkeeper.verify import MoveOutcome, Relocator, starts_match, verify_move
from tests.fixtures import FakeTaskStore
from tests.fixtures.schedule import MONDAY, TUESDAY, at, item


def tuesday_slot(hour=9, minute=0, minutes=30):
    moved = item("tmp", at(TUESDAY, hour, minute), minutes)
    return Slot(TUESDAY, moved.interval)


class TestStartsMatch:
    def test_within_tolerance(self):
        expected = at(MONDAY, 9)

        assert starts_match(expected + timedelta(seconds=60), expected) is True
        assert starts_match(expected - timedelta(seconds=30), expected) is True

    def test_drift_beyond_tolerance(self):
        expected = at(MONDAY, 9)

        assert starts_match(expected + timedelta(seconds=61), expected) is False

    def test_missing_start(self):
        assert starts_match(None, at(MONDAY, 9)) is False

    def test_date_only_compares_days(self):
        assert starts_match(MONDAY, MONDAY) is True
        assert starts_match(at(MONDAY, 9), MONDAY) is True
        assert starts_match(TUESDAY, MONDAY) is False

    def test_date_only_record_does_not_match_timed_expectation(self):
        assert starts_match(MONDAY, at(MONDAY, 9)) is False


class TestVerifyMove:
    def test_confirms_landed_write(self):
        store = FakeTaskStore([item("T", at(MONDAY, 9), 30)])

        assert asyncio.run(verify_move(store, "T", at(MONDAY, 9))) is True

    def test_unreadable_item_is_not_verified(self):
        store = FakeTaskStore([item("T", at(MONDAY, 9), 30)])
        store.unreadable.add("T")

        assert asyncio.run(verify_move(store, "T", at(MONDAY, 9))) is False

    def test_missing_item_is_not_verified(self):
        assert asyncio.run(verify_move(FakeTaskStore(), "gone", at(MONDAY, 9))) is False


class TestRelocator:
    def test_verified_move(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])

        result = asyncio.run(Relocator(store).move(task, tuesday_slot()))

        assert result.outcome == MoveOutcome.MOVED
        assert result.verified is True
        assert store.items["T"].start == at(TUESDAY, 9)
        assert store.items["T"].end == at(TUESDAY, 9, 30)
        assert result.moved_item.start == at(TUESDAY, 9)

    def test_lost_write_is_unverified(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])
        store.drop_writes.add("T")

        result = asyncio.run(Relocator(store).move(task, tuesday_slot()))

        assert result.outcome == MoveOutcome.UNVERIFIED
        assert result.verified is False
        assert store.updated_ids() == ["T"]

    def test_drift_over_tolerance_is_unverified(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])
        store.drift_seconds = 90

        result = asyncio.run(Relocator(store).move(task, tuesday_slot()))

        assert result.outcome == MoveOutcome.UNVERIFIED

    def test_small_drift_still_verified(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])
        store.drift_seconds = 30

        result = asyncio.run(Relocator(store).move(task, tuesday_slot()))

        assert result.outcome == MoveOutcome.MOVED

    def test_no_slot(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])

        result = asyncio.run(Relocator(store).move(task, None))

        assert result.outcome == MoveOutcome.NO_SLOT
        assert store.updates == []

    def test_failed_write(self):
        task = item("T", at(MONDAY, 9), 30)
        store = FakeTaskStore([task])
        store.fail_next = 1

        result = asyncio.run(Relocator(store).move(task, tuesday_slot()))

        assert result.outcome == MoveOutcome.FAILED
        assert "simulated" in result.error
        assert store.items["T"].start == at(MONDAY, 9)

    def test_status_written_with_slot(self):
        task = item("T", None, status="Unprocessed", estimate=30)
        store = FakeTaskStore([task])

        asyncio.run(Relocator(store).move(task, tuesday_slot(), status="Needs Review"))

        assert store.items["T"].status == "Needs Review"
        assert store.updates[0][1].status == "Needs Review"

    def test_result_to_dict(self):
        task = item("T", at(MONDAY, 9), 30, title="Write report")
        store = FakeTaskStore([task])

        data = asyncio.run(Relocator(store).move(task, tuesday_slot())).to_dict()

        assert data == {
            "item_id": "T",
            "title": "Write report",
            "outcome": "moved",
            "from": at(MONDAY, 9).isoformat(),
            "to": at(TUESDAY, 9).isoformat(),
            "error": None,
        }
