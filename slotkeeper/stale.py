"""
SlotKeeper — Stale-Item Reclaimer

An item whose booked end passed a while ago without it being finished gets a
new slot. Placements accumulate in the pass snapshot, so a batch of stale
items never lands on top of itself.
"""

import logging
from datetime import datetime, timedelta

from slotkeeper.config import EngineConfig, StatusConfig
from slotkeeper.cycle_result import PhaseResult
from slotkeeper.models import ScheduleItem
from slotkeeper.movability import MovabilityPolicy
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.slots import find_next_available_slot
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.verify import Relocator

logger = logging.getLogger(__name__)


def is_stale(
    item: ScheduleItem,
    now: datetime,
    statuses: StatusConfig | None = None,
    stale_after_minutes: int = 15,
) -> bool:
    statuses = statuses or StatusConfig()
    end = item.effective_end
    if end is None:
        return False
    if statuses.is_terminal(item.status) or item.status == statuses.not_started:
        return False
    return now - end >= timedelta(minutes=stale_after_minutes)


def collect_stale(
    items: list[ScheduleItem],
    now: datetime,
    policy: MovabilityPolicy,
    stale_after_minutes: int = 15,
) -> list[ScheduleItem]:
    """Stale items the policy lets us move, oldest first."""
    today = now.date()
    stale = [
        item
        for item in items
        if is_stale(item, now, policy.statuses, stale_after_minutes)
        and policy.allows(item, today)
    ]
    return sorted(stale, key=lambda i: i.start)


class StaleItemReclaimer:
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
        phase = PhaseResult(name="stale_reclaim")
        stale = collect_stale(snapshot.items, now, self.policy, self.config.stale_after_minutes)
        phase.data["stale"] = len(stale)

        for item in stale:
            overdue = (now - item.effective_end).total_seconds() / 60
            logger.info(f"Stale: '{item.title}' ended {overdue:.0f} min ago")
            slot = find_next_available_slot(
                snapshot.schedule,
                item.item_type,
                item.duration_minutes,
                snapshot.pto_days,
                self.config.relocation_window,
                now,
                max_days_ahead=self.config.max_days_ahead,
                exclude_id=item.id,
            )
            result = await self.relocator.move(item, slot)
            snapshot.apply(result)
            phase.results.append(result)

        if phase.moves:
            await self.notifier.announce(messages.stale_reclaimed(phase.moves))
        return phase
