#!/usr/bin/env python3
"""
SlotKeeper — Conflict Detection

Finds three kinds of trouble in a set of schedule items:
- overlapping timed items (half-open interval overlap)
- ordinary items sitting on a PTO day
- days whose booked time, plus a mental break per item, exceeds a workday

Detection is pure; resolution lives in resolver.py.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from slotkeeper.models import ItemType, ScheduleItem

logger = logging.getLogger(__name__)


class WorkloadLevel(StrEnum):
    HEALTHY = "healthy"
    BUSY = "busy"
    OVERLOADED = "overloaded"


BUSY_ITEM_COUNT = 6
BUSY_MINUTES = 6 * 60
OVERLOADED_ITEM_COUNT = 8


@dataclass
class OverlapConflict:
    """Two timed items whose intervals intersect; earlier.start <= later.start."""

    earlier: ScheduleItem
    later: ScheduleItem

    @property
    def key(self) -> str:
        return f"{self.earlier.id}|{self.later.id}"

    def to_dict(self) -> dict:
        return {"earlier": self.earlier.to_dict(), "later": self.later.to_dict()}


@dataclass
class PtoConflict:
    item: ScheduleItem
    day: date

    def to_dict(self) -> dict:
        return {"item": self.item.to_dict(), "day": self.day.isoformat()}


@dataclass
class DayWorkload:
    day: date
    item_count: int
    scheduled_minutes: int
    total_minutes: int  # including the per-item mental break
    level: WorkloadLevel
    overbooked: bool

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "item_count": self.item_count,
            "scheduled_minutes": self.scheduled_minutes,
            "total_minutes": self.total_minutes,
            "level": str(self.level),
            "overbooked": self.overbooked,
        }


@dataclass
class ConflictReport:
    overlaps: list[OverlapConflict] = field(default_factory=list)
    pto_conflicts: list[PtoConflict] = field(default_factory=list)
    workload: dict[date, DayWorkload] = field(default_factory=dict)

    @property
    def overbooked(self) -> list[DayWorkload]:
        return [w for w in self.workload.values() if w.overbooked]

    @property
    def is_clear(self) -> bool:
        return not self.overlaps and not self.pto_conflicts

    def to_dict(self) -> dict:
        return {
            "overlaps": [c.to_dict() for c in self.overlaps],
            "pto_conflicts": [c.to_dict() for c in self.pto_conflicts],
            "overbooked": [w.to_dict() for w in self.overbooked],
        }


def _overlap_candidates(items: list[ScheduleItem]) -> list[ScheduleItem]:
    return sorted(
        (
            i
            for i in items
            if i.is_timed and i.item_type not in (ItemType.PROJECT, ItemType.PTO)
        ),
        key=lambda i: i.start,
    )


def detect_overlaps(items: list[ScheduleItem]) -> list[OverlapConflict]:
    """
    Pairwise overlap scan over timed items, sorted by start.

    Each later-starting item is reported at most once, paired with the first
    earlier item it overlaps.
    """
    ordered = _overlap_candidates(items)
    conflicts = []
    for idx, later in enumerate(ordered):
        for earlier in ordered[:idx]:
            if earlier.interval.overlaps(later.interval):
                conflicts.append(OverlapConflict(earlier=earlier, later=later))
                break
    return conflicts


def detect_pto_conflicts(items: list[ScheduleItem], pto_days: set[date]) -> list[PtoConflict]:
    """Dated items, other than Projects and PTO blocks, on a PTO day."""
    return [
        PtoConflict(item=item, day=item.day)
        for item in items
        if item.is_dated
        and item.item_type not in (ItemType.PROJECT, ItemType.PTO)
        and item.day in pto_days
    ]


def _level(count: int, total_minutes: int, overbooked_minutes: int) -> WorkloadLevel:
    if count >= OVERLOADED_ITEM_COUNT or total_minutes > overbooked_minutes:
        return WorkloadLevel.OVERLOADED
    if count >= BUSY_ITEM_COUNT or total_minutes >= BUSY_MINUTES:
        return WorkloadLevel.BUSY
    return WorkloadLevel.HEALTHY


def calculate_workload(
    items: list[ScheduleItem],
    mental_break_minutes: int = 15,
    overbooked_minutes: int = 480,
) -> dict[date, DayWorkload]:
    """Per-day booked minutes of timed items, plus a mental break per item."""
    by_day: dict[date, list[ScheduleItem]] = defaultdict(list)
    for item in items:
        if item.is_timed and item.item_type != ItemType.PTO:
            by_day[item.day].append(item)

    workload = {}
    for day in sorted(by_day):
        day_items = by_day[day]
        scheduled = sum(i.interval.duration_minutes for i in day_items)
        total = scheduled + mental_break_minutes * len(day_items)
        workload[day] = DayWorkload(
            day=day,
            item_count=len(day_items),
            scheduled_minutes=scheduled,
            total_minutes=total,
            level=_level(len(day_items), total, overbooked_minutes),
            overbooked=total > overbooked_minutes,
        )
    return workload


def detect_overbooked_days(
    items: list[ScheduleItem],
    mental_break_minutes: int = 15,
    overbooked_minutes: int = 480,
) -> list[DayWorkload]:
    workload = calculate_workload(items, mental_break_minutes, overbooked_minutes)
    return [w for w in workload.values() if w.overbooked]


def detect_conflicts(
    items: list[ScheduleItem],
    pto_days: set[date],
    mental_break_minutes: int = 15,
    overbooked_minutes: int = 480,
) -> ConflictReport:
    report = ConflictReport(
        overlaps=detect_overlaps(items),
        pto_conflicts=detect_pto_conflicts(items, pto_days),
        workload=calculate_workload(items, mental_break_minutes, overbooked_minutes),
    )
    logger.info(
        f"Detected {len(report.overlaps)} overlaps, {len(report.pto_conflicts)} PTO conflicts, "
        f"{len(report.overbooked)} overbooked days"
    )
    return report
