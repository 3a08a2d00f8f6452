"""
Tests for auto-scheduling items without a time.

Covers:
- Undated and date-only items placed in the scheduling window
- The buffer kept between new placements
- Projects placed date-only on today
- Status promotion to Needs Review
- Types that are never auto-scheduled
"""

import asyncio

from slotkeeper.models import ItemType
from tests.fixtures.schedule import MONDAY, NEXT_MONDAY, SATURDAY, TUESDAY, at, item, pto


def autoschedule(engine):
    return asyncio.run(engine.run_auto_schedule())


class TestAutoSchedule:
    def test_undated_item_gets_first_slot(self, store, channel, make_engine):
        store.add(item("U", None, status="Unprocessed", estimate=45, title="Plan sprint"))

        result = autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["U"].start == at(MONDAY, 8, 30)
        assert store.items["U"].end == at(MONDAY, 9, 15)
        assert store.items["U"].status == "Needs Review"
        assert channel.messages == [
            "Scheduled a new item, Sir:\n• Plan sprint → Mon, Oct 19, 8:30 AM"
        ]
        assert len(result.moves) == 1

    def test_buffer_between_new_placements(self, store, make_engine):
        store.add(item("U1", None, estimate=30), item("U2", None, estimate=30))

        autoschedule(make_engine(at(MONDAY, 7)))

        starts = sorted(store.items[i].start for i in ("U1", "U2"))
        assert starts == [at(MONDAY, 8, 30), at(MONDAY, 9, 10)]

    def test_date_only_item_keeps_its_date(self, store, make_engine):
        store.add(item("D", TUESDAY, estimate=30))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["D"].start == at(TUESDAY, 8, 30)

    def test_date_only_item_on_weekend_goes_to_next_slot(self, store, make_engine):
        store.add(item("D", SATURDAY, estimate=30))

        autoschedule(make_engine(at(SATURDAY, 9)))

        assert store.items["D"].start == at(NEXT_MONDAY, 8, 30)

    def test_date_only_item_on_pto_goes_to_next_slot(self, store, make_engine):
        store.add(item("D", MONDAY, estimate=30), pto("off", MONDAY))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["D"].start == at(TUESDAY, 8, 30)

    def test_past_date_goes_to_next_slot(self, store, make_engine):
        store.add(item("D", MONDAY, estimate=30))

        autoschedule(make_engine(at(TUESDAY, 10, 2)))

        assert store.items["D"].start == at(TUESDAY, 10, 5)

    def test_existing_bookings_respected(self, store, make_engine):
        store.add(
            item("M", at(MONDAY, 8, 30), 60, item_type=ItemType.MEETING),
            item("U", None, estimate=30),
        )

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["U"].start == at(MONDAY, 9, 40)

    def test_undated_project_gets_today(self, store, make_engine):
        store.add(item("P", None, item_type=ItemType.PROJECT))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["P"].start == MONDAY

    def test_past_project_moves_to_today(self, store, make_engine):
        store.add(item("P", MONDAY, item_type=ItemType.PROJECT))

        autoschedule(make_engine(at(TUESDAY, 7)))

        assert store.items["P"].start == TUESDAY

    def test_current_project_left_alone(self, store, make_engine):
        store.add(item("P", TUESDAY, item_type=ItemType.PROJECT))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.updates == []

    def test_meetings_breaks_and_pto_never_scheduled(self, store, make_engine):
        store.add(
            item("M", None, item_type=ItemType.MEETING),
            item("B", MONDAY, item_type=ItemType.BREAK),
            pto("off", TUESDAY),
        )

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.updates == []

    def test_timed_items_left_alone(self, store, make_engine):
        store.add(item("T", at(MONDAY, 10), 30))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.updates == []

    def test_finished_items_ignored(self, store, make_engine):
        store.add(item("U", None, status="Processed"))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.updates == []

    def test_existing_status_kept(self, store, make_engine):
        store.add(item("U", None, status="Upcoming", estimate=30))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["U"].status == "Upcoming"
        assert store.updates[0][1].status is None

    def test_empty_status_promoted(self, store, make_engine):
        store.add(item("U", None, status=None, estimate=30))

        autoschedule(make_engine(at(MONDAY, 7)))

        assert store.items["U"].status == "Needs Review"
