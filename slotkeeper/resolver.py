"""
SlotKeeper — Conflict Resolver

Turns a ConflictReport into moves:

- PTO conflicts: protected items, and items pinned by an Upcoming status or a
  bump, are reported to the operator and left alone; anything else goes to
  the next non-PTO workday, keeping its time of day when it has one.
- Overlaps (A starts before B): move the one movable side; if both can move,
  move B; if neither can, report both to the operator.

Every write is verified, and only verified moves are announced, in one
batched message per pass.
"""

import logging
from datetime import date, datetime, timedelta

from slotkeeper.config import EngineConfig
from slotkeeper.conflicts import ConflictReport, OverlapConflict, detect_conflicts, detect_overlaps
from slotkeeper.cycle_result import PhaseResult
from slotkeeper.models import ItemType, ScheduleItem, Slot
from slotkeeper.movability import MovabilityPolicy
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.resilience import BoundedIdCache
from slotkeeper.slots import find_next_available_slot, next_non_pto_workday
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.verify import Relocator

logger = logging.getLogger(__name__)


class ConflictResolver:
    def __init__(
        self,
        config: EngineConfig,
        policy: MovabilityPolicy,
        relocator: Relocator,
        notifier: Notifier,
        alert_cache: BoundedIdCache | None = None,
    ):
        self.config = config
        self.policy = policy
        self.relocator = relocator
        self.notifier = notifier
        self.alert_cache = alert_cache or BoundedIdCache(config.alert_cache_size)

    # ------------------------------------------------------------
    # Conflict pass
    # ------------------------------------------------------------

    def detect(self, snapshot: ScheduleSnapshot, now: datetime) -> ConflictReport:
        """Conflicts among active items dated from today to the horizon."""
        today = now.date()
        horizon = today + timedelta(days=self.config.conflict_horizon_days)
        candidates = snapshot.active_between(today, horizon)
        report = detect_conflicts(
            candidates,
            snapshot.pto_days,
            mental_break_minutes=self.config.mental_break_minutes,
            overbooked_minutes=self.config.overbooked_minutes,
        )
        for day in report.overbooked:
            logger.warning(
                f"{day.day.isoformat()} is overbooked: {day.total_minutes} min "
                f"across {day.item_count} items ({day.level})"
            )
        return report

    async def run_conflict_pass(
        self, snapshot: ScheduleSnapshot, now: datetime
    ) -> list[PhaseResult]:
        report = self.detect(snapshot, now)

        pto_phase = await self.resolve_pto_conflicts(snapshot, report, now)
        overlap_phase = await self.resolve_overlap_conflicts(
            snapshot, report.overlaps, now, search_from_next_day=True
        )
        overlap_phase.data["workload"] = [w.to_dict() for w in report.workload.values()]

        verified = pto_phase.moves + overlap_phase.moves
        if verified:
            await self.notifier.announce(messages.conflict_resolution(verified))
        return [pto_phase, overlap_phase]

    async def resolve_pto_conflicts(
        self, snapshot: ScheduleSnapshot, report: ConflictReport, now: datetime
    ) -> PhaseResult:
        phase = PhaseResult(name="pto_conflicts")
        today = now.date()

        for conflict in report.pto_conflicts:
            item = snapshot.get(conflict.item.id) or conflict.item
            if item.day not in snapshot.pto_days:
                continue

            if item.item_type in (ItemType.MEETING, ItemType.BREAK):
                await self._alert(
                    phase,
                    f"pto|{item.id}@{item.day.isoformat()}",
                    messages.protected_on_pto(item, item.day),
                )
                continue

            if not self.policy.allows(item, today):
                await self._alert(
                    phase,
                    f"pto|{item.id}@{item.day.isoformat()}",
                    messages.pinned_on_pto(item, item.day),
                )
                continue

            slot = self._pto_target(snapshot, item, now)
            result = await self.relocator.move(item, slot)
            snapshot.apply(result)
            phase.results.append(result)

        return phase

    def _pto_target(
        self, snapshot: ScheduleSnapshot, item: ScheduleItem, now: datetime
    ) -> Slot | None:
        if not item.is_timed:
            day = next_non_pto_workday(item.day, snapshot.pto_days, self.config.relocation_window)
            return Slot(day) if day else None
        return find_next_available_slot(
            snapshot.schedule,
            item.item_type,
            item.duration_minutes,
            snapshot.pto_days,
            self.config.relocation_window,
            now,
            max_days_ahead=self.config.max_days_ahead,
            start_day=max(item.day + timedelta(days=1), now.date()),
            preferred_time=item.start.time(),
            exclude_id=item.id,
        )

    # ------------------------------------------------------------
    # Overlaps
    # ------------------------------------------------------------

    async def resolve_overlaps(self, snapshot: ScheduleSnapshot, now: datetime) -> PhaseResult:
        """Optimization-pass variant: all dated active items, earliest slot from B's own day."""
        conflicts = detect_overlaps(snapshot.active_items())
        phase = await self.resolve_overlap_conflicts(
            snapshot, conflicts, now, search_from_next_day=False
        )
        phase.name = "overlaps"
        if phase.moves:
            await self.notifier.announce(messages.overlap_resolution(phase.moves))
        return phase

    async def resolve_overlap_conflicts(
        self,
        snapshot: ScheduleSnapshot,
        conflicts: list[OverlapConflict],
        now: datetime,
        search_from_next_day: bool = True,
    ) -> PhaseResult:
        phase = PhaseResult(name="overlap_conflicts")
        today = now.date()

        for conflict in conflicts:
            earlier = snapshot.get(conflict.earlier.id) or conflict.earlier
            later = snapshot.get(conflict.later.id) or conflict.later

            # An earlier move in this pass may already have separated them
            if not self._still_overlapping(earlier, later):
                logger.debug(f"'{earlier.title}' and '{later.title}' no longer overlap")
                continue

            earlier_ok = self.policy.allows(earlier, today)
            later_ok = self.policy.allows(later, today)

            if not earlier_ok and not later_ok:
                await self._alert(
                    phase,
                    f"{conflict.key}@{later.day.isoformat()}",
                    messages.unresolvable_conflict(earlier, later),
                )
                continue

            target = later if later_ok else earlier
            slot = self._overlap_target(snapshot, target, now, search_from_next_day)
            result = await self.relocator.move(target, slot)
            snapshot.apply(result)
            phase.results.append(result)

        return phase

    @staticmethod
    def _still_overlapping(a: ScheduleItem, b: ScheduleItem) -> bool:
        if a.interval is None or b.interval is None:
            return False
        return a.interval.overlaps(b.interval)

    def _overlap_target(
        self,
        snapshot: ScheduleSnapshot,
        item: ScheduleItem,
        now: datetime,
        search_from_next_day: bool,
    ) -> Slot | None:
        today = now.date()
        if search_from_next_day:
            start_day: date = max(item.day + timedelta(days=1), today)
            preferred = item.start.time()
        else:
            # Same day first, earliest gap; never pulled to a day before its own
            start_day, preferred = max(item.day, today), None
        return find_next_available_slot(
            snapshot.schedule,
            item.item_type,
            item.duration_minutes,
            snapshot.pto_days,
            self.config.relocation_window,
            now,
            max_days_ahead=self.config.max_days_ahead,
            start_day=start_day,
            preferred_time=preferred,
            exclude_id=item.id,
        )

    async def _alert(self, phase: PhaseResult, key: str, text: str) -> None:
        """Operator report, sent once per key while the key stays cached."""
        phase.alerts.append(text)
        if key in self.alert_cache:
            logger.debug(f"Already alerted for {key}")
            return
        self.alert_cache.add(key)
        logger.warning(text.replace("\n", " "))
        await self.notifier.announce(text)
