"""
ScheduleEngine - the produced interface of SlotKeeper.

Wires the components together and runs the passes:

    run_conflict_pass()      PTO conflicts, then overlaps (searching ahead)
    run_optimization_pass()  gap fill, stale reclaim, overlaps, off-hours items
    run_auto_schedule()      give times to items that have none
    check_upcoming_events()  read-only highlight scan

Writing passes hold a single asyncio.Lock for their whole read-decide-write
cycle, so two timers never act on the same snapshot. The highlight scan only
reads and does not take it.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from slotkeeper.autoschedule import AutoScheduler
from slotkeeper.config import EngineConfig
from slotkeeper.cycle_result import PassResult, PhaseResult
from slotkeeper.errors import TaskStoreError
from slotkeeper.gap_filler import GapFiller
from slotkeeper.highlighter import EventHighlighter, HighlightCallback, HighlightResult
from slotkeeper.movability import BumpRegistry, MovabilityPolicy
from slotkeeper.notifier import Notifier, channel_from_settings
from slotkeeper.observability import PassContext
from slotkeeper.observability import metrics
from slotkeeper.resolver import ConflictResolver
from slotkeeper.schema import PropertyMap
from slotkeeper.snapshot import ScheduleSnapshot
from slotkeeper.stale import StaleItemReclaimer
from slotkeeper.task_store import TaskStore
from slotkeeper.verify import Relocator
from slotkeeper.window import WindowRelocator

logger = logging.getLogger(__name__)

PhaseRunner = Callable[[ScheduleSnapshot, datetime], Awaitable[PhaseResult | list[PhaseResult]]]


class ScheduleEngine:
    def __init__(
        self,
        store: TaskStore,
        config: EngineConfig | None = None,
        notifier: Notifier | None = None,
        now_fn: Callable[[], datetime] | None = None,
        on_highlight: HighlightCallback | None = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.notifier = notifier or Notifier(channel_from_settings(self.config.slack))
        self._now_fn = now_fn or (lambda: datetime.now(self.config.tz))

        self.bumps = BumpRegistry()
        self.policy = MovabilityPolicy(
            self.config.statuses, self.bumps, self.config.max_auto_move_minutes
        )
        self.relocator = Relocator(store, self.config.verify_tolerance_seconds)

        self.resolver = ConflictResolver(self.config, self.policy, self.relocator, self.notifier)
        self.gap_filler = GapFiller(
            store, self.config, self.policy, self.relocator, self.notifier
        )
        self.stale = StaleItemReclaimer(self.config, self.policy, self.relocator, self.notifier)
        self.window = WindowRelocator(self.config, self.policy, self.relocator, self.notifier)
        self.autoscheduler = AutoScheduler(
            store, self.config, self.policy, self.relocator, self.notifier
        )
        self.highlighter = EventHighlighter(store, self.config, self.notifier, on_highlight)

        self._write_lock = asyncio.Lock()
        self.last_results: dict[str, PassResult] = {}
        self.last_highlight: HighlightResult | None = None

    def now(self) -> datetime:
        return self._now_fn()

    async def startup(self) -> PropertyMap | None:
        """Resolve the store's property map, failing fast on a bad schema."""
        connect = getattr(self.store, "connect", None)
        if connect is None:
            return None
        return await connect()

    # ------------------------------------------------------------
    # Pass runner
    # ------------------------------------------------------------

    async def _run_pass(self, name: str, phases: list[tuple[str, PhaseRunner]]) -> PassResult:
        async with self._write_lock:
            with PassContext(name) as ctx:
                now = self.now()
                result = PassResult(name=name, started_at=now, pass_id=ctx.pass_id)
                logger.info(f"▶ Running {name} pass")

                try:
                    snapshot = await ScheduleSnapshot.load(self.store, self.config.statuses)
                except TaskStoreError as e:
                    logger.error(f"✗ {name} pass could not read the task store: {e}")
                    metrics.pass_failures.inc()
                    result.phases.append(PhaseResult(name="snapshot", success=False, error=str(e)))
                    result.completed_at = self.now()
                    self.last_results[name] = result
                    return result

                for phase_name, runner in phases:
                    started = time.monotonic()
                    try:
                        outcome = await runner(snapshot, now)
                    except TaskStoreError as e:
                        logger.error(f"✗ {name}/{phase_name} failed: {e}")
                        metrics.pass_failures.inc()
                        outcome = PhaseResult(name=phase_name, success=False, error=str(e))
                    elapsed = time.monotonic() - started
                    for phase in outcome if isinstance(outcome, list) else [outcome]:
                        phase.duration_seconds = elapsed
                        result.phases.append(phase)

                result.completed_at = self.now()
                self.last_results[name] = result
                logger.info(
                    f"✓ {name} pass completed: {len(result.moves)} moved, "
                    f"{len(result.unverified)} unverified, {len(result.unplaced)} unplaced",
                    extra={"pass": name, "moves": len(result.moves)},
                )
                return result

    # ------------------------------------------------------------
    # Produced interface
    # ------------------------------------------------------------

    async def run_conflict_pass(self) -> PassResult:
        return await self._run_pass("conflicts", [("conflicts", self.resolver.run_conflict_pass)])

    async def run_optimization_pass(self) -> PassResult:
        phases: list[tuple[str, PhaseRunner]] = [
            ("gap_fill", self.gap_filler.run),
            ("stale_reclaim", self.stale.run),
            ("overlaps", self.resolver.resolve_overlaps),
        ]
        if self.config.relocate_out_of_window:
            phases.append(("out_of_window", self.window.run))
        return await self._run_pass("optimize", phases)

    async def run_auto_schedule(self) -> PassResult:
        return await self._run_pass("autoschedule", [("auto_schedule", self.autoscheduler.run)])

    async def check_upcoming_events(self) -> HighlightResult:
        with PassContext("notify"):
            result = await self.highlighter.check_upcoming_events(self.now())
        self.last_highlight = result
        return result

    def register_bump(self, item_id: str) -> None:
        """Keep an item where it is for the rest of today."""
        self.bumps.bump(item_id, self.now().date())
