"""
Tests for ScheduleEngine pass orchestration.

Covers:
- Phase order and result aggregation
- Task-store failures recorded as failed phases, never raised
- Single-writer lock across concurrent passes
- Idempotence of the optimization pass
- Startup schema resolution
"""

import asyncio

import pytest

from slotkeeper.engine import ScheduleEngine
from slotkeeper.errors import TaskStoreUnavailable
from tests.fixtures import FakeTaskStore
from tests.fixtures.schedule import MONDAY, THURSDAY, TUESDAY, WEDNESDAY, at, item


class TestPassResults:
    def test_optimization_phase_order(self, make_engine):
        result = asyncio.run(make_engine(at(MONDAY, 9)).run_optimization_pass())

        assert [p.name for p in result.phases] == [
            "gap_fill",
            "stale_reclaim",
            "overlaps",
            "out_of_window",
        ]
        assert result.overall_success is True
        assert result.pass_id.startswith("optimize-")

    def test_conflict_pass_phases(self, make_engine):
        result = asyncio.run(make_engine(at(MONDAY, 9)).run_conflict_pass())

        assert [p.name for p in result.phases] == ["pto_conflicts", "overlap_conflicts"]

    def test_last_results_kept_per_pass(self, make_engine):
        engine = make_engine(at(MONDAY, 9))

        asyncio.run(engine.run_conflict_pass())
        asyncio.run(engine.run_auto_schedule())

        assert set(engine.last_results) == {"conflicts", "autoschedule"}

    def test_overlaps_in_optimization_pass_search_from_today(self, store, channel, make_engine):
        store.add(item("A", at(MONDAY, 10), 30), item("B", at(MONDAY, 10, 15), 30))

        result = asyncio.run(make_engine(at(MONDAY, 9, 2)).run_optimization_pass())

        assert store.items["B"].start == at(MONDAY, 9, 5)
        assert [m.item.id for m in result.phase("overlaps").moves] == ["B"]
        assert channel.messages == ["Sorted out an overlap, Sir:\n• B → Mon, Oct 19, 9:05 AM"]

    def test_future_day_overlap_stays_on_its_own_day(self, store, make_engine):
        store.add(item("A", at(WEDNESDAY, 9), 30), item("B", at(WEDNESDAY, 9, 15), 30))

        result = asyncio.run(make_engine(at(MONDAY, 7)).run_optimization_pass())

        assert store.items["A"].start == at(WEDNESDAY, 9)
        assert store.items["B"].start == at(WEDNESDAY, 8)
        assert store.items["B"].end == at(WEDNESDAY, 8, 30)
        assert [m.item.id for m in result.phase("overlaps").moves] == ["B"]

    def test_future_day_overlap_on_full_day_moves_forward(self, store, make_engine):
        store.add(
            item("A", at(WEDNESDAY, 8), 490),
            item("B", at(WEDNESDAY, 9, 15), 30),
        )

        asyncio.run(make_engine(at(MONDAY, 7)).run_optimization_pass())

        assert store.items["B"].start == at(THURSDAY, 8)


class TestFailures:
    def test_unreachable_store_fails_pass_without_raising(self, store, make_engine):
        store.fail_next = 1

        result = asyncio.run(make_engine(at(MONDAY, 9)).run_conflict_pass())

        assert result.overall_success is False
        assert result.failed_phases == ["snapshot"]
        assert "simulated" in result.phase("snapshot").error

    def test_failing_phase_does_not_stop_the_rest(self, store, make_engine):
        store.add(item("S", at(MONDAY, 8), 30))
        engine = make_engine(at(MONDAY, 9))

        async def broken(snapshot, now):
            raise TaskStoreUnavailable("gap query failed")

        engine.gap_filler.run = broken
        result = asyncio.run(engine.run_optimization_pass())

        assert result.failed_phases == ["gap_fill"]
        assert [m.item.id for m in result.phase("stale_reclaim").moves] == ["S"]

    def test_failed_write_is_reported_not_raised(self, store, make_engine):
        store.add(item("A", at(MONDAY, 10), 30), item("B", at(MONDAY, 10, 15), 30))
        engine = make_engine(at(MONDAY, 9))

        async def refuse(item_id, patch):
            raise TaskStoreUnavailable("write refused")

        store.update_item = refuse
        result = asyncio.run(engine.run_conflict_pass())

        assert result.overall_success is True
        assert [r.item.id for r in result.phase("overlap_conflicts").failed] == ["B"]
        assert result.moves == []

    def test_store_recovers_on_next_pass(self, store, make_engine):
        store.add(item("A", at(MONDAY, 10), 30), item("B", at(MONDAY, 10, 15), 30))
        engine = make_engine(at(MONDAY, 9))
        store.fail_next = 1

        first = asyncio.run(engine.run_conflict_pass())
        second = asyncio.run(engine.run_conflict_pass())

        assert first.overall_success is False
        assert [m.item.id for m in second.moves] == ["B"]


class TestConcurrency:
    def test_concurrent_passes_never_double_move(self, store, make_engine):
        store.add(item("A", at(MONDAY, 10), 30), item("B", at(MONDAY, 10, 15), 30))
        engine = make_engine(at(MONDAY, 9))

        async def both():
            return await asyncio.gather(engine.run_conflict_pass(), engine.run_optimization_pass())

        conflicts, optimize = asyncio.run(both())

        assert store.updated_ids() == ["B"]
        assert len(conflicts.moves) + len(optimize.moves) == 1


class TestIdempotence:
    def test_second_optimization_pass_makes_no_writes(self, store, make_engine):
        store.add(
            item("done", at(MONDAY, 9), 60, status="Processed"),
            item("fill", at(MONDAY, 15), 20),
            item("stale", at(MONDAY, 8), 30),
            item("A", at(MONDAY, 13), 30),
            item("B", at(MONDAY, 13, 15), 30),
            item("late", at(MONDAY, 18), 30),
        )
        engine = make_engine(at(MONDAY, 9, 20))

        first = asyncio.run(engine.run_optimization_pass())
        writes = len(store.updates)
        second = asyncio.run(engine.run_optimization_pass())

        assert len(first.moves) == 4
        assert len(store.updates) == writes
        assert second.moves == []


class TestStartup:
    def test_connect_called_when_store_supports_it(self, config):
        class ConnectingStore(FakeTaskStore):
            connected = False

            async def connect(self):
                self.connected = True
                return "mapping"

        store = ConnectingStore()
        engine = ScheduleEngine(store, config)

        assert asyncio.run(engine.startup()) == "mapping"
        assert store.connected is True

    def test_plain_store_needs_no_connect(self, config):
        engine = ScheduleEngine(FakeTaskStore(), config)

        assert asyncio.run(engine.startup()) is None

    def test_default_clock_uses_configured_timezone(self, config):
        engine = ScheduleEngine(FakeTaskStore(), config)

        assert engine.now().tzinfo.key == "America/New_York"

    def test_bump_registered_for_today(self, make_engine):
        engine = make_engine(at(MONDAY, 9))

        engine.register_bump("T")

        assert engine.bumps.is_bumped("T", MONDAY)
        assert not engine.bumps.is_bumped("T", TUESDAY)


@pytest.mark.parametrize(
    "pass_name", ["run_conflict_pass", "run_optimization_pass", "run_auto_schedule"]
)
def test_empty_store_passes_succeed(make_engine, pass_name):
    result = asyncio.run(getattr(make_engine(at(MONDAY, 9)), pass_name)())

    assert result.overall_success is True
    assert result.moves == []
    assert result.to_dict()["completed_at"] is not None
