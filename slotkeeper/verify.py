"""
SlotKeeper — write verification

The task store is eventually consistent, so a successful update says nothing
about what the next read returns. Every relocation is re-read before it is
counted, and only verified moves are ever announced.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

from slotkeeper.errors import TaskStoreError
from slotkeeper.models import ItemPatch, ScheduleItem, Slot
from slotkeeper.observability import metrics
from slotkeeper.task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 60.0


def starts_match(
    recorded: datetime | date | None,
    expected: datetime | date,
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    if recorded is None:
        return False
    if isinstance(expected, datetime):
        if not isinstance(recorded, datetime):
            return False
        return abs((recorded - expected).total_seconds()) <= tolerance_seconds
    # Date-only placement: the day is all that counts
    recorded_day = recorded.date() if isinstance(recorded, datetime) else recorded
    return recorded_day == expected


async def verify_move(
    store: TaskStore,
    item_id: str,
    expected_start: datetime | date,
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """
    Re-read an item and check its start landed where we put it.

    A failed read means the outcome is unknown, which is reported as False.
    """
    try:
        item = await store.get_item(item_id)
    except TaskStoreError as e:
        logger.warning(f"Could not re-read {item_id} to verify move: {e}")
        return False

    ok = starts_match(item.start, expected_start, tolerance_seconds)
    if not ok:
        logger.warning(
            f"Move of {item_id} not confirmed: expected {expected_start.isoformat()}, "
            f"store has {item.start.isoformat() if item.start else None}"
        )
    return ok


class MoveOutcome(StrEnum):
    MOVED = "moved"  # written and verified
    UNVERIFIED = "unverified"  # written, read-back disagrees or failed
    NO_SLOT = "no_slot"
    FAILED = "failed"  # write itself failed


@dataclass
class MoveResult:
    item: ScheduleItem
    outcome: MoveOutcome
    slot: Slot | None = None
    error: str | None = None

    @property
    def verified(self) -> bool:
        return self.outcome == MoveOutcome.MOVED

    @property
    def moved_item(self) -> ScheduleItem:
        return self.item.moved_to(self.slot) if self.slot else self.item

    def to_dict(self) -> dict:
        return {
            "item_id": self.item.id,
            "title": self.item.title,
            "outcome": str(self.outcome),
            "from": self.item.start.isoformat() if self.item.start else None,
            "to": self.slot.start.isoformat() if self.slot else None,
            "error": self.error,
        }


class Relocator:
    """Writes a new slot for an item, then verifies the write."""

    def __init__(self, store: TaskStore, tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS):
        self.store = store
        self.tolerance_seconds = tolerance_seconds

    async def move(
        self, item: ScheduleItem, slot: Slot | None, status: str | None = None
    ) -> MoveResult:
        if slot is None:
            logger.info(f"Could not place '{item.title}' ({item.id})")
            metrics.items_unplaced.inc()
            return MoveResult(item=item, outcome=MoveOutcome.NO_SLOT)

        try:
            await self.store.update_item(item.id, ItemPatch.for_slot(slot, status=status))
        except TaskStoreError as e:
            logger.error(f"Failed to move '{item.title}' ({item.id}): {e}")
            return MoveResult(item=item, outcome=MoveOutcome.FAILED, slot=slot, error=str(e))

        if await verify_move(self.store, item.id, slot.start, self.tolerance_seconds):
            logger.info(f"Moved '{item.title}' ({item.id}) to {slot.start.isoformat()}")
            metrics.moves_total.inc()
            return MoveResult(item=item, outcome=MoveOutcome.MOVED, slot=slot)

        metrics.moves_unverified.inc()
        return MoveResult(item=item, outcome=MoveOutcome.UNVERIFIED, slot=slot)
