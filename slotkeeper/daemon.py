"""
SlotKeeper Daemon — periodic driver for the scheduling passes

Runs each pass on its own asyncio timer:
- conflicts: every 30 minutes, first run after 30 seconds
- optimize:  every 2 minutes, first run after 60 seconds
- notify:    every 5 minutes, first run after 30 seconds

Timers interleave freely; the engine's write lock keeps the writing passes
from overlapping. A failing job is logged and tracked, never fatal.

Usage:
    python cli.py daemon            # run until SIGINT/SIGTERM
    python cli.py daemon --once     # run every job once and exit
"""

import asyncio
import enum
import json
import logging
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from slotkeeper import paths
from slotkeeper.cycle_result import PassResult
from slotkeeper.engine import ScheduleEngine
from slotkeeper.observability.metrics import REGISTRY

logger = logging.getLogger(__name__)


class JobHealth(str, enum.Enum):
    """Health status for scheduled jobs."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class JobConfig:
    """Configuration for a scheduled job."""

    name: str
    interval_seconds: float
    initial_delay_seconds: float = 0.0


@dataclass
class JobState:
    """Runtime state for a job."""

    last_run: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    total_runs: int = 0
    total_failures: int = 0
    health_status: JobHealth = JobHealth.HEALTHY

    @property
    def is_healthy(self) -> bool:
        """Check if job is in healthy state."""
        return self.health_status == JobHealth.HEALTHY


class ScheduleDaemon:
    """
    Drives a ScheduleEngine on independent timers.

    Features:
    - Per-job interval and initial delay from config
    - Job health tracking (healthy / degraded / unhealthy)
    - Graceful shutdown on SIGTERM/SIGINT
    - State persistence across restarts
    """

    def __init__(self, engine: ScheduleEngine, state_file: Path | None = None):
        self.engine = engine
        self.state_file = state_file or paths.data_dir() / "daemon_state.json"
        self.jobs: dict[str, JobConfig] = {}
        self.job_states: dict[str, JobState] = {}
        self.handlers: dict[str, Callable[[], Awaitable[object]]] = {}
        self.running = False
        self._shutdown = asyncio.Event()

        self._register_default_jobs()
        self._load_state()

    def _register_default_jobs(self):
        intervals = self.engine.config.intervals
        self.register_job(
            JobConfig(
                name="conflicts",
                interval_seconds=intervals.conflict_minutes * 60,
                initial_delay_seconds=intervals.conflict_initial_delay_seconds,
            ),
            self.engine.run_conflict_pass,
        )
        self.register_job(
            JobConfig(
                name="optimize",
                interval_seconds=intervals.optimize_minutes * 60,
                initial_delay_seconds=intervals.optimize_initial_delay_seconds,
            ),
            self.engine.run_optimization_pass,
        )
        self.register_job(
            JobConfig(
                name="notify",
                interval_seconds=intervals.notify_minutes * 60,
                initial_delay_seconds=intervals.notify_initial_delay_seconds,
            ),
            self.engine.check_upcoming_events,
        )

    def register_job(self, config: JobConfig, handler: Callable[[], Awaitable[object]]):
        """Register a job with the daemon."""
        self.jobs[config.name] = config
        self.handlers[config.name] = handler
        if config.name not in self.job_states:
            self.job_states[config.name] = JobState()

    # ------------------------------------------------------------
    # State
    # ------------------------------------------------------------

    def _load_state(self):
        """Load persisted job state from disk."""
        if not self.state_file.exists():
            return
        try:
            with open(self.state_file) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load state: {e}")
            return
        for name, state_data in data.get("jobs", {}).items():
            if name not in self.job_states:
                continue
            state = self.job_states[name]
            if state_data.get("last_run"):
                state.last_run = datetime.fromisoformat(state_data["last_run"])
            if state_data.get("last_success"):
                state.last_success = datetime.fromisoformat(state_data["last_success"])
            state.last_error = state_data.get("last_error")
            state.total_runs = state_data.get("total_runs", 0)
            state.total_failures = state_data.get("total_failures", 0)
        logger.info(f"Loaded state from {self.state_file}")

    def _save_state(self):
        """Persist job state to disk."""
        data = {"jobs": {}, "updated_at": datetime.now().isoformat()}
        for name, state in self.job_states.items():
            data["jobs"][name] = {
                "last_run": state.last_run.isoformat() if state.last_run else None,
                "last_success": state.last_success.isoformat() if state.last_success else None,
                "last_error": state.last_error,
                "consecutive_failures": state.consecutive_failures,
                "total_runs": state.total_runs,
                "total_failures": state.total_failures,
                "health": state.health_status.value,
            }
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_file, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to save state: {e}")

    # ------------------------------------------------------------
    # Health
    # ------------------------------------------------------------

    def _update_job_health(self, job_name: str):
        """Update job health status based on consecutive failures."""
        state = self.job_states[job_name]
        old_status = state.health_status

        if state.consecutive_failures == 0:
            state.health_status = JobHealth.HEALTHY
        elif state.consecutive_failures < 3:
            state.health_status = JobHealth.DEGRADED
        else:
            state.health_status = JobHealth.UNHEALTHY

        if old_status != state.health_status:
            logger.warning(
                f"{job_name} health changed: {old_status.value} -> {state.health_status.value} "
                f"({state.consecutive_failures} consecutive failures)"
            )

        REGISTRY.gauge(f"slotkeeper_job_health_{job_name}", f"Health of job {job_name}").set(
            {"healthy": 1, "degraded": 0.5, "unhealthy": 0}.get(state.health_status.value, 0)
        )

    def get_job_health(self, job_name: str | None = None) -> dict:
        """
        Get health status for one or all jobs.

        Args:
            job_name: Specific job, or None for all jobs
        """
        if job_name:
            if job_name not in self.job_states:
                return {"error": f"Job {job_name} not found"}
            state = self.job_states[job_name]
            return {
                "name": job_name,
                "health": state.health_status.value,
                "consecutive_failures": state.consecutive_failures,
                "total_failures": state.total_failures,
                "total_runs": state.total_runs,
                "last_error": state.last_error,
                "last_success": state.last_success.isoformat() if state.last_success else None,
            }
        return {jn: self.get_job_health(jn) for jn in self.jobs}

    # ------------------------------------------------------------
    # Running
    # ------------------------------------------------------------

    async def _run_job(self, job_name: str) -> bool:
        """Execute a job and return success status."""
        state = self.job_states[job_name]
        logger.info(f"▶ Running {job_name}...")
        start = datetime.now()
        state.last_run = start
        state.total_runs += 1

        try:
            result = await self.handlers[job_name]()
            if isinstance(result, PassResult) and not result.overall_success:
                raise RuntimeError(f"failed phases: {', '.join(result.failed_phases)}")
        except Exception as e:
            duration = (datetime.now() - start).total_seconds()
            state.last_error = str(e)[:500]
            state.total_failures += 1
            state.consecutive_failures += 1
            logger.error(f"✗ {job_name} failed in {duration:.1f}s: {state.last_error[:100]}")
            self._update_job_health(job_name)
            return False

        duration = (datetime.now() - start).total_seconds()
        state.last_success = datetime.now()
        state.last_error = None
        state.consecutive_failures = 0
        self._update_job_health(job_name)
        logger.info(f"✓ {job_name} completed in {duration:.1f}s")
        return True

    async def run_once(self) -> dict[str, bool]:
        """Run all jobs once in sequence."""
        results = {}
        for job_name in self.jobs:
            results[job_name] = await self._run_job(job_name)
        self._save_state()
        succeeded = sum(results.values())
        logger.info(f"Cycle complete: {succeeded}/{len(results)} jobs succeeded")
        return results

    async def _sleep(self, seconds: float) -> bool:
        """Wait up to `seconds`; True when shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
            return True
        except TimeoutError:
            return False

    async def _job_loop(self, job: JobConfig):
        if await self._sleep(job.initial_delay_seconds):
            return
        while self.running:
            await self._run_job(job.name)
            self._save_state()
            if await self._sleep(job.interval_seconds):
                return

    def request_shutdown(self, sig_name: str = "shutdown"):
        logger.info(f"Received {sig_name}, shutting down...")
        self.running = False
        self._shutdown.set()

    async def run(self, install_signal_handlers: bool = True):
        """Main daemon loop; returns after shutdown is requested."""
        self.running = True
        logger.info("=" * 50)
        logger.info("SlotKeeper daemon starting")
        logger.info(f"Jobs: {', '.join(self.jobs.keys())}")
        logger.info("=" * 50)

        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)

        tasks = [asyncio.create_task(self._job_loop(job)) for job in self.jobs.values()]
        try:
            await self._shutdown.wait()
        finally:
            # Jobs in flight finish; only the waits are cut short
            await asyncio.gather(*tasks, return_exceptions=True)
            self._save_state()
            logger.info("Daemon stopped")
