"""
SlotKeeper — Gap Filler

When an item is finished before its booked end, the rest of its window is
free. Future movable items are pulled forward into that gap, earliest first,
each followed by a mental-break buffer, until too little time is left for
the shortest task.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from slotkeeper.config import EngineConfig
from slotkeeper.cycle_result import PhaseResult
from slotkeeper.models import Interval, ScheduleItem, Slot
from slotkeeper.movability import MovabilityPolicy
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.resilience import BoundedIdCache
from slotkeeper.slots import has_overlap
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.task_store import ItemFilter, TaskStore
from slotkeeper.verify import MoveOutcome, Relocator

logger = logging.getLogger(__name__)


@dataclass
class Gap:
    """Unused time [start, end) left by an item finished early."""

    item: ScheduleItem
    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


def find_gaps(
    finished_items: list[ScheduleItem], now: datetime, min_gap_minutes: int = 5
) -> list[Gap]:
    """Finished timed items whose window strictly contains now, with enough left over."""
    gaps = []
    for item in finished_items:
        if not item.is_timed:
            continue
        end = item.effective_end
        if not (item.start < now < end):
            continue
        gap = Gap(item=item, start=now, end=end)
        if gap.minutes >= min_gap_minutes:
            gaps.append(gap)
    return sorted(gaps, key=lambda g: g.end)


class GapFiller:
    def __init__(
        self,
        store: TaskStore,
        config: EngineConfig,
        policy: MovabilityPolicy,
        relocator: Relocator,
        notifier: Notifier,
        checked: BoundedIdCache | None = None,
    ):
        self.store = store
        self.config = config
        self.policy = policy
        self.relocator = relocator
        self.notifier = notifier
        self.checked = checked or BoundedIdCache(config.alert_cache_size)

    async def run(self, snapshot: ScheduleSnapshot, now: datetime) -> PhaseResult:
        phase = PhaseResult(name="gap_fill")
        today = now.date()

        finished = await self.store.query(
            ItemFilter(
                status_in=self.config.statuses.terminal, on_or_after=today, on_or_before=today
            )
        )
        gaps = [
            g
            for g in find_gaps(finished, now, self.config.min_gap_minutes)
            if g.item.id not in self.checked
        ]
        phase.data["gaps"] = len(gaps)

        for gap in gaps:
            self.checked.add(gap.item.id)
            logger.info(
                f"'{gap.item.title}' finished early, {gap.minutes:.0f} min free "
                f"until {gap.end.isoformat()}"
            )
            await self._fill(gap, snapshot, now, phase)

        return phase

    def _candidates(self, snapshot: ScheduleSnapshot, now: datetime) -> list[ScheduleItem]:
        today = now.date()
        limit = self.config.gap_fill_max_minutes
        return sorted(
            (
                item
                for item in snapshot.active_items()
                if item.is_timed
                and item.start > now
                and self.policy.allows(item, today)
                and (limit is None or item.duration_minutes <= limit)
            ),
            key=lambda i: i.start,
        )

    async def _fill(
        self, gap: Gap, snapshot: ScheduleSnapshot, now: datetime, phase: PhaseResult
    ) -> None:
        buffer = self.config.mental_break_minutes
        smallest = self.config.min_task_minutes + buffer
        cursor = gap.start

        for candidate in self._candidates(snapshot, now):
            remaining = (gap.end - cursor).total_seconds() / 60
            if remaining < smallest:
                break

            duration = candidate.duration_minutes
            if duration + buffer > remaining:
                continue

            interval = Interval(cursor, cursor + timedelta(minutes=duration))
            day = snapshot.schedule.get(cursor.date())
            booked = day.timed_intervals(exclude_id=candidate.id) if day else []
            if has_overlap(booked, interval):
                continue

            result = await self.relocator.move(candidate, Slot(cursor.date(), interval))
            snapshot.apply(result)
            phase.results.append(result)

            if result.outcome in (MoveOutcome.MOVED, MoveOutcome.UNVERIFIED):
                cursor += timedelta(minutes=duration + buffer)
            if result.verified:
                await self.notifier.announce(messages.gap_filled(candidate, result.slot))
