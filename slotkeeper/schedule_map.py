"""
Schedule map: items grouped by calendar date, with PTO days flagged.

Pure functions, no I/O. Passes build one map from a store snapshot and then
keep it current with add_booking/remove_item as they relocate items, so later
placements in the same pass see earlier ones.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from slotkeeper.models import Interval, ItemType, ScheduleItem, Slot


@dataclass
class Booking:
    """Time occupied on a day by one item."""

    start: datetime | date
    end: datetime | None
    duration_minutes: int
    item_type: str
    item_id: str | None = None

    @property
    def is_timed(self) -> bool:
        return isinstance(self.start, datetime) and self.end is not None

    @property
    def interval(self) -> Interval | None:
        return Interval(self.start, self.end) if self.is_timed else None


@dataclass
class DaySchedule:
    is_pto: bool = False
    bookings: list[Booking] = field(default_factory=list)

    def timed_intervals(self, exclude_id: str | None = None) -> list[Interval]:
        return [
            b.interval
            for b in self.bookings
            if b.is_timed and (exclude_id is None or b.item_id != exclude_id)
        ]


ScheduleMap = dict[date, DaySchedule]


def booking_for(item: ScheduleItem) -> Booking:
    return Booking(
        start=item.start,
        end=item.effective_end,
        duration_minutes=item.duration_minutes,
        item_type=item.item_type,
        item_id=item.id,
    )


def build_schedule_map(items: list[ScheduleItem]) -> ScheduleMap:
    """
    Group dated items by the day they start on.

    A day is PTO when any PTO item starts on it. Undated items are ignored.
    """
    schedule: ScheduleMap = {}
    for item in items:
        if not item.is_dated:
            continue
        day = schedule.setdefault(item.day, DaySchedule())
        if item.item_type == ItemType.PTO:
            day.is_pto = True
        day.bookings.append(booking_for(item))
    return schedule


def pto_days(items: list[ScheduleItem]) -> set[date]:
    """Days blocked by a PTO item, whatever that item's status."""
    return {item.day for item in items if item.item_type == ItemType.PTO and item.is_dated}


def add_booking(
    schedule: ScheduleMap,
    slot: Slot,
    duration_minutes: int,
    item_type: str = ItemType.TASK,
    item_id: str | None = None,
) -> None:
    """Record a placement made during the current pass."""
    day = schedule.setdefault(slot.day, DaySchedule())
    day.bookings.append(
        Booking(
            start=slot.start,
            end=slot.end,
            duration_minutes=duration_minutes,
            item_type=item_type,
            item_id=item_id,
        )
    )


def remove_item(schedule: ScheduleMap, item_id: str) -> None:
    """Drop every booking of an item, so it does not block its own new slot."""
    for day in schedule.values():
        day.bookings = [b for b in day.bookings if b.item_id != item_id]
