"""
SlotKeeper — Auto-scheduler

Gives a time to items that do not have one yet, inside the initial
scheduling window (which keeps a buffer between bookings):

- no date at all: next available slot
- date only: a time on that same date when it is today or later, a workday,
  not PTO and has room; otherwise the next available slot
- Projects: date-only, today, when undated or left in the past

Newly scheduled items with an empty or Unprocessed status move to Needs
Review so the operator sees them.
"""

import logging
from datetime import datetime

from slotkeeper.config import EngineConfig
from slotkeeper.cycle_result import PhaseResult
from slotkeeper.models import ItemType, ScheduleItem, Slot
from slotkeeper.movability import MovabilityPolicy
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.slots import find_next_available_slot, find_slot_on_day
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.task_store import ItemFilter, TaskStore
from slotkeeper.verify import Relocator

logger = logging.getLogger(__name__)


class AutoScheduler:
    def __init__(
        self,
        store: TaskStore,
        config: EngineConfig,
        policy: MovabilityPolicy,
        relocator: Relocator,
        notifier: Notifier,
    ):
        self.store = store
        self.config = config
        self.policy = policy
        self.relocator = relocator
        self.notifier = notifier

    def _promoted_status(self, item: ScheduleItem) -> str | None:
        statuses = self.config.statuses
        if not item.status or item.status == statuses.unscheduled:
            return statuses.review
        return None

    def needs_scheduling(self, item: ScheduleItem, now: datetime) -> bool:
        if item.item_type in (ItemType.PTO, ItemType.MEETING, ItemType.BREAK):
            return False
        if item.item_type == ItemType.PROJECT:
            return not item.is_dated or item.day < now.date()
        return not item.is_timed

    def target_slot(
        self, snapshot: ScheduleSnapshot, item: ScheduleItem, now: datetime
    ) -> Slot | None:
        today = now.date()
        window = self.config.scheduling_window

        if item.item_type == ItemType.PROJECT:
            return Slot(today)

        if item.is_dated:
            day = item.day
            schedule = snapshot.schedule.get(day)
            usable = (
                day >= today
                and window.is_workday(day)
                and day not in snapshot.pto_days
                and not (schedule and schedule.is_pto)
            )
            if usable:
                interval = find_slot_on_day(
                    day,
                    schedule.bookings if schedule else [],
                    item.duration_minutes,
                    window.buffer_minutes,
                    window,
                    now,
                )
                if interval:
                    return Slot(day, interval)

        return find_next_available_slot(
            snapshot.schedule,
            item.item_type,
            item.duration_minutes,
            snapshot.pto_days,
            window,
            now,
            max_days_ahead=self.config.max_days_ahead,
            exclude_id=item.id,
        )

    async def run(self, snapshot: ScheduleSnapshot, now: datetime) -> PhaseResult:
        phase = PhaseResult(name="auto_schedule")
        today = now.date()

        open_items = await self.store.query(
            ItemFilter(exclude_statuses=self.config.statuses.terminal)
        )
        pending = [
            i
            for i in open_items
            if self.needs_scheduling(i, now) and (not i.is_dated or self.policy.allows(i, today))
        ]
        phase.data["pending"] = len(pending)

        for item in pending:
            slot = self.target_slot(snapshot, item, now)
            result = await self.relocator.move(item, slot, status=self._promoted_status(item))
            snapshot.apply(result)
            phase.results.append(result)

        if phase.moves:
            await self.notifier.announce(messages.items_scheduled(phase.moves))
        return phase
