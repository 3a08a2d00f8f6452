"""
Tests for the conflict pass.

Covers:
- Overlap resolution: which side moves, where it lands
- PTO conflicts: timed and date-only items, protected items reported
- Unresolvable pairs reported once per pair and day
- Only verified moves are announced
"""

import asyncio
from datetime import timedelta

from slotkeeper.models import ItemType
from tests.fixtures.schedule import (
    FRIDAY,
    MONDAY,
    NEXT_MONDAY,
    TUESDAY,
    WEDNESDAY,
    at,
    item,
    pto,
)

MORNING = at(MONDAY, 7)


def run_conflicts(engine):
    return asyncio.run(engine.run_conflict_pass())


# =============================================================================
# OVERLAPS
# =============================================================================


class TestOverlapResolution:
    def test_later_item_moves_to_next_day_same_time(self, store, channel, make_engine):
        store.add(item("A", at(MONDAY, 9), 30), item("B", at(MONDAY, 9, 15), 30))

        result = run_conflicts(make_engine(MORNING))

        assert store.items["A"].start == at(MONDAY, 9)
        assert store.items["B"].start == at(TUESDAY, 9, 15)
        assert store.items["B"].end == at(TUESDAY, 9, 45)
        assert [m.item.id for m in result.moves] == ["B"]
        assert channel.messages == [
            "Resolved a scheduling conflict, Sir:\n• B → Tue, Oct 20, 9:15 AM"
        ]

    def test_movable_earlier_item_moves_when_later_is_protected(self, store, make_engine):
        store.add(
            item("task", at(MONDAY, 9), 30),
            item("meet", at(MONDAY, 9, 15), 30, item_type=ItemType.MEETING),
        )

        run_conflicts(make_engine(MORNING))

        assert store.items["meet"].start == at(MONDAY, 9, 15)
        assert store.items["task"].start == at(TUESDAY, 9)

    def test_upcoming_future_item_stays_and_other_side_moves(self, store, make_engine):
        store.add(
            item("first", at(TUESDAY, 9), 30),
            item("pinned", at(TUESDAY, 9, 15), 30, status="Upcoming"),
        )

        run_conflicts(make_engine(MORNING))

        assert store.items["pinned"].start == at(TUESDAY, 9, 15)
        assert store.items["first"].start == at(WEDNESDAY, 9)

    def test_bumped_item_stays_put(self, store, make_engine):
        store.add(item("A", at(MONDAY, 9), 30), item("B", at(MONDAY, 9, 15), 30))
        engine = make_engine(MORNING)
        engine.register_bump("B")

        run_conflicts(engine)

        assert store.items["B"].start == at(MONDAY, 9, 15)
        assert store.items["A"].start == at(TUESDAY, 9)

    def test_preferred_time_taken_uses_earliest_gap(self, store, make_engine):
        store.add(
            item("A", at(MONDAY, 9), 30),
            item("B", at(MONDAY, 9, 15), 30),
            item("busy", at(TUESDAY, 9), 60, item_type=ItemType.MEETING),
        )

        run_conflicts(make_engine(MORNING))

        assert store.items["B"].start == at(TUESDAY, 8)

    def test_moves_in_one_pass_do_not_collide(self, store, make_engine):
        store.add(
            item("A", at(MONDAY, 9), 30),
            item("B", at(MONDAY, 9, 10), 30),
            item("C", at(MONDAY, 9, 20), 30),
        )

        run_conflicts(make_engine(MORNING))

        b, c = store.items["B"], store.items["C"]
        assert b.day == TUESDAY and c.day == TUESDAY
        assert not b.interval.overlaps(c.interval)

    def test_unresolvable_pair_reported_once(self, store, channel, make_engine):
        store.add(
            item("M1", at(MONDAY, 9), 30, item_type=ItemType.MEETING, title="Standup"),
            item("M2", at(MONDAY, 9, 15), 30, item_type=ItemType.MEETING, title="Review"),
        )
        engine = make_engine(MORNING)

        first = run_conflicts(engine)
        second = run_conflicts(engine)

        assert store.updates == []
        assert len(first.alerts) == 1
        assert len(second.alerts) == 1
        assert len(channel.messages) == 1
        assert '"Standup" (Meeting) conflicts with "Review" (Meeting)' in channel.messages[0]
        assert "Both items cannot be moved automatically." in channel.messages[0]

    def test_unverified_move_is_not_announced(self, store, channel, make_engine):
        store.add(item("A", at(MONDAY, 9), 30), item("B", at(MONDAY, 9, 15), 30))
        store.drop_writes.add("B")

        result = run_conflicts(make_engine(MORNING))

        assert result.moves == []
        assert [m.item.id for m in result.unverified] == ["B"]
        assert channel.messages == []

    def test_items_beyond_horizon_are_ignored(self, store, make_engine):
        far = MONDAY + timedelta(days=15)
        store.add(item("A", at(far, 9), 30), item("B", at(far, 9, 15), 30))

        run_conflicts(make_engine(MORNING))

        assert store.updates == []

    def test_not_started_items_are_left_alone(self, store, make_engine):
        store.add(
            item("A", at(MONDAY, 9), 30),
            item("B", at(MONDAY, 9, 15), 30, status="Not Started"),
        )

        run_conflicts(make_engine(MORNING))

        assert store.updates == []

    def test_clean_schedule_makes_no_writes(self, store, channel, make_engine):
        store.add(item("A", at(MONDAY, 9), 30), item("B", at(MONDAY, 9, 30), 30))

        result = run_conflicts(make_engine(MORNING))

        assert store.updates == []
        assert channel.messages == []
        assert result.overall_success is True


# =============================================================================
# PTO
# =============================================================================


class TestPtoResolution:
    def test_timed_item_moves_to_next_weekday_same_time(self, store, make_engine):
        store.add(item("T", at(MONDAY, 9), 30), pto("off", MONDAY))

        run_conflicts(make_engine(MORNING))

        assert store.items["T"].start == at(TUESDAY, 9)

    def test_friday_pto_rolls_over_the_weekend(self, store, make_engine):
        store.add(item("T", at(FRIDAY, 9), 30), pto("off", FRIDAY))

        run_conflicts(make_engine(MORNING))

        assert store.items["T"].start == at(NEXT_MONDAY, 9)

    def test_consecutive_pto_days_skipped(self, store, make_engine):
        store.add(item("T", at(MONDAY, 9), 30), pto("off1", MONDAY), pto("off2", TUESDAY))

        run_conflicts(make_engine(MORNING))

        assert store.items["T"].start == at(WEDNESDAY, 9)

    def test_date_only_item_moves_to_next_workday(self, store, make_engine):
        store.add(item("T", FRIDAY), pto("off", FRIDAY))

        run_conflicts(make_engine(MORNING))

        assert store.items["T"].start == NEXT_MONDAY

    def test_finished_pto_block_still_counts(self, store, make_engine):
        store.add(item("T", at(MONDAY, 9), 30), pto("off", MONDAY, status="Processed"))

        run_conflicts(make_engine(MORNING))

        assert store.items["T"].start == at(TUESDAY, 9)

    def test_meeting_on_pto_is_reported_not_moved(self, store, channel, make_engine):
        store.add(
            item("M", at(MONDAY, 9), 30, item_type=ItemType.MEETING, title="1:1"),
            pto("off", MONDAY),
        )
        engine = make_engine(MORNING)

        result = run_conflicts(engine)
        run_conflicts(engine)

        assert store.updates == []
        assert len(result.alerts) == 1
        assert len(channel.messages) == 1
        assert channel.messages[0].startswith('Sir, "1:1" (Meeting) is scheduled on 2026-10-19')

    def test_projects_on_pto_are_not_conflicts(self, store, make_engine):
        store.add(item("P", MONDAY, item_type=ItemType.PROJECT), pto("off", MONDAY))

        run_conflicts(make_engine(MORNING))

        assert store.updates == []

    def test_upcoming_future_item_on_pto_stays_and_is_reported(
        self, store, channel, make_engine
    ):
        store.add(
            item("U", at(TUESDAY, 9), 30, status="Upcoming", title="Offsite prep"),
            pto("off", TUESDAY),
        )
        engine = make_engine(MORNING)

        result = run_conflicts(engine)
        run_conflicts(engine)

        assert store.updates == []
        assert len(result.alerts) == 1
        assert channel.messages == [
            'Sir, "Offsite prep" (Task, Upcoming) is scheduled on 2026-10-20, which is a '
            "PTO day. It is pinned in place, so I left it there for you to move."
        ]

    def test_bumped_item_on_pto_is_reported(self, store, channel, make_engine):
        store.add(item("T", at(MONDAY, 9), 30), pto("off", MONDAY))
        engine = make_engine(MORNING)
        engine.register_bump("T")

        result = run_conflicts(engine)

        assert store.updates == []
        assert result.alerts[0].startswith('Sir, "T" (Task, Needs Review) is scheduled on')

    def test_pass_is_idempotent(self, store, make_engine):
        store.add(
            item("A", at(MONDAY, 9), 30),
            item("B", at(MONDAY, 9, 15), 30),
            item("T", at(WEDNESDAY, 9), 30),
            pto("off", WEDNESDAY),
        )
        engine = make_engine(MORNING)

        run_conflicts(engine)
        writes = len(store.updates)
        second = run_conflicts(engine)

        assert writes == 2
        assert len(store.updates) == writes
        assert second.moves == []

    def test_workload_reported_in_phase_data(self, store, make_engine):
        store.add(item("A", at(MONDAY, 9), 60))

        result = run_conflicts(make_engine(MORNING))

        workload = result.phase("overlap_conflicts").data["workload"]
        assert workload[0]["day"] == "2026-10-19"
        assert workload[0]["total_minutes"] == 75
