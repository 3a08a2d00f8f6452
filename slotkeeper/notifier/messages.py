"""Canned operator messages for every outcome the engine announces."""

from datetime import date, datetime

from slotkeeper.models import ScheduleItem, Slot
from slotkeeper.verify import MoveResult


def format_time(dt: datetime) -> str:
    """9:05 AM"""
    return dt.strftime("%I:%M %p").lstrip("0")


def format_slot(start: datetime | date) -> str:
    """Mon, Oct 19, 9:05 AM, or Mon, Oct 19 for date-only placements."""
    if isinstance(start, datetime):
        return f"{start:%a, %b} {start.day}, {format_time(start)}"
    return f"{start:%a, %b} {start.day}"


def _bullets(moves: list[MoveResult]) -> str:
    return "\n".join(f"• {m.item.title} → {format_slot(m.slot.start)}" for m in moves)


def _batch(moves: list[MoveResult], one: str, many: str, empty: str) -> str:
    if not moves:
        return empty
    if len(moves) == 1:
        return f"{one}:\n{_bullets(moves)}"
    return f"{many}:\n{_bullets(moves)}"


def gap_filled(item: ScheduleItem, slot: Slot) -> str:
    return f'Moved "{item.title}" to {format_time(slot.start)}, Sir.'


def overlap_resolution(moves: list[MoveResult]) -> str:
    return _batch(
        moves,
        "Sorted out an overlap, Sir",
        "Sorted out a few overlaps, Sir",
        "Sorted out an overlap, Sir.",
    )


def conflict_resolution(moves: list[MoveResult]) -> str:
    return _batch(
        moves,
        "Resolved a scheduling conflict, Sir",
        f"Resolved {len(moves)} scheduling conflicts, Sir",
        "Resolved a scheduling conflict, Sir.",
    )


def out_of_window(moves: list[MoveResult]) -> str:
    return _batch(
        moves,
        "Moved an off-hours item into your work schedule, Sir",
        f"Relocated {len(moves)} off-hours items into your work schedule, Sir",
        "Relocated off-hours items into your work schedule, Sir.",
    )


def stale_reclaimed(moves: list[MoveResult]) -> str:
    return _batch(
        moves,
        "I took the liberty of rescheduling that overdue item, Sir",
        f"I've rescheduled {len(moves)} overdue items for you, Sir",
        "Rescheduled overdue items, Sir.",
    )


def items_scheduled(moves: list[MoveResult]) -> str:
    return _batch(
        moves,
        "Scheduled a new item, Sir",
        f"Scheduled {len(moves)} new items, Sir",
        "Schedule updated, all items are scheduled.",
    )


def protected_on_pto(item: ScheduleItem, day: date) -> str:
    return (
        f'Sir, "{item.title}" ({item.item_type}) is scheduled on {day.isoformat()}, '
        "which is a PTO day. This requires your attention as I cannot move protected "
        "items automatically."
    )


def pinned_on_pto(item: ScheduleItem, day: date) -> str:
    status = f", {item.status}" if item.status else ""
    return (
        f'Sir, "{item.title}" ({item.item_type}{status}) is scheduled on {day.isoformat()}, '
        "which is a PTO day. It is pinned in place, so I left it there for you to move."
    )


def unresolvable_conflict(earlier: ScheduleItem, later: ScheduleItem) -> str:
    return (
        "Sir, I detected a scheduling conflict that requires your attention:\n"
        f'• "{earlier.title}" ({earlier.item_type}) conflicts with '
        f'"{later.title}" ({later.item_type}) on {later.day.isoformat()}\n\n'
        "Both items cannot be moved automatically."
    )


def upcoming_events(events: list) -> str:
    """events: HighlightedEvent objects that just came within the lookahead."""
    if len(events) == 1:
        event = events[0]
        plural = "" if event.minutes_until == 1 else "s"
        return (
            f"*Upcoming {event.item_type}*\n\n*{event.title}* is starting in "
            f"{event.minutes_until} minute{plural} at {format_time(event.start)}"
        )
    lines = "\n".join(
        f"• *{e.title}* - {e.minutes_until} min ({format_time(e.start)})" for e in events
    )
    return f"*You have {len(events)} upcoming events:*\n\n{lines}"
