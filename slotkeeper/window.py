"""
SlotKeeper — out-of-window relocation

Movable timed items in the next two weeks that sit on a weekend or outside
the work window are moved to the first free slot inside it, today included.
"""

import logging
from datetime import datetime, timedelta

from slotkeeper.config import EngineConfig
from slotkeeper.cycle_result import PhaseResult
from slotkeeper.models import ItemType, ScheduleItem
from slotkeeper.movability import MovabilityPolicy
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.slots import find_next_available_slot
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.verify import Relocator

logger = logging.getLogger(__name__)


def out_of_window(
    items: list[ScheduleItem], config: EngineConfig, now: datetime
) -> list[ScheduleItem]:
    today = now.date()
    horizon = today + timedelta(days=config.conflict_horizon_days)
    window = config.relocation_window
    return sorted(
        (
            item
            for item in items
            if item.is_timed
            and item.item_type != ItemType.PROJECT
            and today <= item.day <= horizon
            and not window.contains(item.start, item.effective_end)
        ),
        key=lambda i: i.start,
    )


class WindowRelocator:
    def __init__(
        self,
        config: EngineConfig,
        policy: MovabilityPolicy,
        relocator: Relocator,
        notifier: Notifier,
    ):
        self.config = config
        self.policy = policy
        self.relocator = relocator
        self.notifier = notifier

    async def run(self, snapshot: ScheduleSnapshot, now: datetime) -> PhaseResult:
        phase = PhaseResult(name="out_of_window")
        today = now.date()
        items = [
            i
            for i in out_of_window(snapshot.active_items(), self.config, now)
            if self.policy.allows(i, today)
        ]

        for item in items:
            workday = self.config.relocation_window.is_workday(item.day)
            reason = "off-hours" if workday else "weekend"
            logger.info(f"'{item.title}' is outside the work window ({reason})")
            slot = find_next_available_slot(
                snapshot.schedule,
                item.item_type,
                item.duration_minutes,
                snapshot.pto_days,
                self.config.relocation_window,
                now,
                max_days_ahead=self.config.conflict_horizon_days,
                start_day=today,
                exclude_id=item.id,
            )
            result = await self.relocator.move(item, slot)
            snapshot.apply(result)
            phase.results.append(result)

        if phase.moves:
            await self.notifier.announce(messages.out_of_window(phase.moves))
        return phase
