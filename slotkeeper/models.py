"""
SlotKeeper — Schedule data model

ScheduleItem mirrors one row of the external task database. The engine only
ever reads items and changes their start/end (and, when first scheduling
them, their status).
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import StrEnum


class ItemType(StrEnum):
    TASK = "Task"
    MEETING = "Meeting"
    PROJECT = "Project"
    BREAK = "Break"
    PTO = "PTO"


# Never relocated by the engine, whatever their status or date
PROTECTED_TYPES = frozenset({ItemType.MEETING, ItemType.BREAK, ItemType.PTO})

DEFAULT_DURATIONS = {
    ItemType.TASK: 10,
    ItemType.BREAK: 15,
    ItemType.MEETING: 30,
}
FALLBACK_DURATION = 30


def default_duration(item_type: str, estimated_minutes: int | None = None) -> int:
    """Estimate when present, else a type-based default."""
    if estimated_minutes:
        return int(estimated_minutes)
    return DEFAULT_DURATIONS.get(item_type, FALLBACK_DURATION)


@dataclass(frozen=True)
class Interval:
    """A half-open time interval [start, end)."""

    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class Slot:
    """Placement chosen by the slot finder: timed, or a bare date for Projects."""

    day: date
    interval: Interval | None = None

    @property
    def start(self) -> datetime | date:
        return self.interval.start if self.interval else self.day

    @property
    def end(self) -> datetime | None:
        return self.interval.end if self.interval else None

    @property
    def is_timed(self) -> bool:
        return self.interval is not None


@dataclass
class ScheduleItem:
    """A calendar-like item in the task store."""

    id: str
    title: str = "Untitled"
    item_type: str = ItemType.TASK
    status: str | None = None
    start: datetime | date | None = None
    end: datetime | None = None
    estimated_minutes: int | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_dated(self) -> bool:
        return self.start is not None

    @property
    def is_timed(self) -> bool:
        return isinstance(self.start, datetime)

    @property
    def is_protected(self) -> bool:
        return self.item_type in PROTECTED_TYPES

    @property
    def day(self) -> date | None:
        if self.start is None:
            return None
        if isinstance(self.start, datetime):
            return self.start.date()
        return self.start

    @property
    def duration_minutes(self) -> int:
        return default_duration(self.item_type, self.estimated_minutes)

    @property
    def effective_end(self) -> datetime | None:
        """Recorded end, else start + duration. None for date-only items."""
        if not self.is_timed:
            return None
        if self.end is not None:
            return self.end
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def interval(self) -> Interval | None:
        if not self.is_timed:
            return None
        return Interval(self.start, self.effective_end)

    def moved_to(self, slot: Slot) -> "ScheduleItem":
        """Copy of this item placed at slot."""
        return replace(self, start=slot.start, end=slot.end)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": str(self.item_type),
            "status": self.status,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "estimated_minutes": self.estimated_minutes,
        }


@dataclass(frozen=True)
class ItemPatch:
    """Property changes the engine may write back."""

    start: datetime | date | None = None
    end: datetime | None = None
    status: str | None = None

    @classmethod
    def for_slot(cls, slot: Slot, status: str | None = None) -> "ItemPatch":
        return cls(start=slot.start, end=slot.end, status=status)
