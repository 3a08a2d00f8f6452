"""
One read of the task store, shared by the phases of a pass.

Holds every non-terminal dated item, every PTO item whatever its status, and
the schedule map built from them. Phases record their moves with apply() so
later placements in the same pass never collide with earlier ones, even
while the store has not caught up with the writes.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from slotkeeper.config import StatusConfig
from slotkeeper.models import ItemType, ScheduleItem
from slotkeeper.schedule_map import (
    ScheduleMap,
    add_booking,
    build_schedule_map,
    pto_days as collect_pto_days,
    remove_item,
)
from slotkeeper.task_store import ItemFilter, SortSpec, TaskStore
from slotkeeper.verify import MoveOutcome, MoveResult

logger = logging.getLogger(__name__)


@dataclass
class ScheduleSnapshot:
    items: list[ScheduleItem]
    statuses: StatusConfig = field(default_factory=StatusConfig)
    pto_items: list[ScheduleItem] = field(default_factory=list)
    schedule: ScheduleMap = field(default_factory=dict)
    pto_days: set[date] = field(default_factory=set)

    def __post_init__(self):
        self.schedule = build_schedule_map(self._bookable())
        self.pto_days = collect_pto_days(self.pto_items)

    def _bookable(self) -> list[ScheduleItem]:
        seen = {i.id for i in self.items}
        return self.items + [p for p in self.pto_items if p.id not in seen]

    @classmethod
    async def load(cls, store: TaskStore, statuses: StatusConfig) -> "ScheduleSnapshot":
        items = await store.query(
            ItemFilter(exclude_statuses=statuses.terminal, dated_only=True), SortSpec()
        )
        pto_items = await store.query(ItemFilter(types=(ItemType.PTO,), dated_only=True))
        logger.debug(f"Snapshot: {len(items)} open items, {len(pto_items)} PTO items")
        return cls(items=items, statuses=statuses, pto_items=pto_items)

    def get(self, item_id: str) -> ScheduleItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def active_items(self) -> list[ScheduleItem]:
        return [i for i in self.items if self.statuses.is_active(i.status)]

    def active_between(self, first: date, last: date) -> list[ScheduleItem]:
        return [i for i in self.active_items() if first <= i.day <= last]

    def apply(self, result: MoveResult) -> None:
        """
        Record a written move.

        A verified move frees the old position. An unverified one may or may
        not have landed, so both positions stay booked.
        """
        if result.outcome not in (MoveOutcome.MOVED, MoveOutcome.UNVERIFIED):
            return
        item, slot = result.item, result.slot
        if result.outcome == MoveOutcome.MOVED:
            remove_item(self.schedule, item.id)
            self.items = [result.moved_item if i.id == item.id else i for i in self.items]
        add_booking(self.schedule, slot, item.duration_minutes, item.item_type, item.id)
