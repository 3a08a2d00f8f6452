"""
SlotKeeper — Slot Finder

Finds the earliest non-overlapping interval for an item inside the work
window, searching forward day by day when a day is full.

Tie-break is always earliest day, then earliest time of day. Weekends and
PTO days are never offered.
"""

import logging
from datetime import date, datetime, time, timedelta

from slotkeeper.config import WorkWindow
from slotkeeper.models import Interval, ItemType, Slot
from slotkeeper.schedule_map import Booking, ScheduleMap

logger = logging.getLogger(__name__)

CURSOR_STEP_MINUTES = 5


def ceil_to_step(dt: datetime, step_minutes: int = CURSOR_STEP_MINUTES) -> datetime:
    """Round a datetime up to the next multiple of step_minutes."""
    discard = timedelta(
        minutes=dt.minute % step_minutes, seconds=dt.second, microseconds=dt.microsecond
    )
    if not discard:
        return dt
    return dt - discard + timedelta(minutes=step_minutes)


def has_overlap(intervals: list[Interval], candidate: Interval) -> bool:
    return any(candidate.overlaps(existing) for existing in intervals)


def find_slot_on_day(
    day: date,
    bookings: list[Booking],
    duration_minutes: int,
    buffer_minutes: int,
    window: WorkWindow,
    now: datetime,
) -> Interval | None:
    """
    Earliest gap on `day` that holds duration_minutes inside the work window.

    The cursor starts at work start, or at now (rounded up to 5 minutes) when
    searching today after work has started. Each booking pushes the cursor to
    its end plus buffer_minutes.
    """
    work_start, work_end = window.bounds(day, now.tzinfo)
    duration = timedelta(minutes=duration_minutes)
    buffer = timedelta(minutes=buffer_minutes)

    cursor = work_start
    if day == now.date() and now > cursor:
        cursor = ceil_to_step(now)

    timed = sorted((b for b in bookings if b.is_timed), key=lambda b: b.start)

    for booking in timed:
        if cursor >= work_end:
            return None
        if booking.start - cursor >= duration:
            break
        cursor = max(cursor, booking.end + buffer)

    if cursor + duration <= work_end:
        return Interval(cursor, cursor + duration)
    return None


def _fits_at(
    day: date,
    at: time,
    bookings: list[Booking],
    duration_minutes: int,
    buffer_minutes: int,
    window: WorkWindow,
    now: datetime,
) -> Interval | None:
    """Interval at a fixed time of day, if it is free and inside the window."""
    start = datetime.combine(day, at, tzinfo=now.tzinfo)
    candidate = Interval(start, start + timedelta(minutes=duration_minutes))
    if start < now or not window.contains(candidate.start, candidate.end):
        return None
    buffer = timedelta(minutes=buffer_minutes)
    occupied = [Interval(b.start, b.end + buffer) for b in bookings if b.is_timed]
    if has_overlap(occupied, candidate):
        return None
    return candidate


def find_next_available_slot(
    schedule: ScheduleMap,
    item_type: str,
    duration_minutes: int,
    pto_days: set[date],
    window: WorkWindow,
    now: datetime,
    max_days_ahead: int = 30,
    start_day: date | None = None,
    preferred_time: time | None = None,
    exclude_id: str | None = None,
) -> Slot | None:
    """
    First slot on or after start_day (default: today) that fits the item.

    Projects only need a date. For timed items the preferred time of day is
    tried first on each candidate day, then the earliest free gap.

    Returns None when nothing fits within max_days_ahead days; callers report
    that as "could not place".
    """
    first_day = start_day or now.date()

    for offset in range(max_days_ahead):
        day = first_day + timedelta(days=offset)
        if day < now.date():
            continue
        if not window.is_workday(day) or day in pto_days:
            continue

        day_schedule = schedule.get(day)
        if day_schedule is not None and day_schedule.is_pto:
            continue

        if item_type == ItemType.PROJECT:
            return Slot(day)

        bookings = [] if day_schedule is None else day_schedule.bookings
        if exclude_id is not None:
            bookings = [b for b in bookings if b.item_id != exclude_id]

        if preferred_time is not None:
            interval = _fits_at(
                day, preferred_time, bookings, duration_minutes, window.buffer_minutes, window, now
            )
            if interval:
                return Slot(day, interval)

        interval = find_slot_on_day(
            day, bookings, duration_minutes, window.buffer_minutes, window, now
        )
        if interval:
            return Slot(day, interval)

    logger.info(
        "No available slot in the next %d days for %d minutes", max_days_ahead, duration_minutes
    )
    return None


def next_non_pto_workday(
    day: date,
    pto_days: set[date],
    window: WorkWindow,
    max_days: int = 14,
) -> date | None:
    """The nearest following workday that is not a PTO day."""
    for offset in range(1, max_days + 1):
        candidate = day + timedelta(days=offset)
        if window.is_workday(candidate) and candidate not in pto_days:
            return candidate
    return None
