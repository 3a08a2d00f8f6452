"""
SlotKeeper — Movability Policy

can_move is the single authority on whether the engine may relocate an item.
Every caller goes through MovabilityPolicy.allows, which adds the operator's
same-day bumps and the optional size cap on top of it.
"""

import logging
from datetime import date

from slotkeeper.config import StatusConfig
from slotkeeper.models import ScheduleItem

logger = logging.getLogger(__name__)


def can_move(item: ScheduleItem, today: date, statuses: StatusConfig | None = None) -> bool:
    """
    False for Meeting, Break and PTO items, whatever their status or date.

    An Upcoming item placed on a future day was put there on purpose and stays;
    on or before today it may move like any other item.
    """
    statuses = statuses or StatusConfig()
    if item.is_protected:
        return False
    if item.status == statuses.upcoming and item.day is not None and item.day > today:
        return False
    return True


class BumpRegistry:
    """Items the operator pinned for the rest of the day."""

    def __init__(self):
        self._bumped: dict[str, date] = {}

    def bump(self, item_id: str, today: date) -> None:
        self._bumped[item_id] = today
        logger.info(f"Bumped {item_id} for {today.isoformat()}")

    def is_bumped(self, item_id: str, today: date) -> bool:
        self._prune(today)
        return self._bumped.get(item_id) == today

    def active(self, today: date) -> list[str]:
        self._prune(today)
        return sorted(self._bumped)

    def _prune(self, today: date) -> None:
        for item_id in [i for i, d in self._bumped.items() if d != today]:
            del self._bumped[item_id]


class MovabilityPolicy:
    def __init__(
        self,
        statuses: StatusConfig | None = None,
        bumps: BumpRegistry | None = None,
        max_auto_move_minutes: int | None = None,
    ):
        self.statuses = statuses or StatusConfig()
        self.bumps = bumps or BumpRegistry()
        self.max_auto_move_minutes = max_auto_move_minutes

    def allows(self, item: ScheduleItem, today: date) -> bool:
        if not can_move(item, today, self.statuses):
            return False
        if self.bumps.is_bumped(item.id, today):
            logger.debug(f"{item.id} is bumped for today, leaving it in place")
            return False
        if (
            self.max_auto_move_minutes is not None
            and item.duration_minutes > self.max_auto_move_minutes
        ):
            logger.debug(
                f"{item.id} runs {item.duration_minutes} min, "
                f"over the {self.max_auto_move_minutes} min auto-move limit"
            )
            return False
        return True
