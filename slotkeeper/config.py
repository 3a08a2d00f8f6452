"""
Centralized configuration for SlotKeeper.

Values come from config/schedule.yaml (see paths.config_path) with
environment overrides for secrets and deployment-specific endpoints.
A missing file falls back to the defaults below.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from slotkeeper import paths
from slotkeeper.errors import ConfigError

logger = logging.getLogger(__name__)

# ============================================================
# Environment overrides
# ============================================================

ENV_NOTION_TOKEN = "SLOTKEEPER_NOTION_TOKEN"
ENV_NOTION_DATABASE_ID = "SLOTKEEPER_NOTION_DATABASE_ID"
ENV_SLACK_WEBHOOK_URL = "SLOTKEEPER_SLACK_WEBHOOK_URL"
ENV_TIMEZONE = "SLOTKEEPER_TIMEZONE"
ENV_LOG_LEVEL = "SLOTKEEPER_LOG_LEVEL"

MONDAY_TO_FRIDAY = (0, 1, 2, 3, 4)


@dataclass(frozen=True)
class WorkWindow:
    """Daily bookable window, identical on every workday."""

    start: time
    end: time
    buffer_minutes: int = 0
    workdays: tuple[int, ...] = MONDAY_TO_FRIDAY

    def is_workday(self, day: date) -> bool:
        return day.weekday() in self.workdays

    def bounds(self, day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
        """Return the (start, end) datetimes of the window on a given day."""
        return (
            datetime.combine(day, self.start, tzinfo=tz),
            datetime.combine(day, self.end, tzinfo=tz),
        )

    def contains(self, start: datetime, end: datetime) -> bool:
        """True when [start, end) sits inside the window of start's day."""
        if not self.is_workday(start.date()):
            return False
        lo, hi = self.bounds(start.date(), start.tzinfo)
        return lo <= start and end <= hi


@dataclass(frozen=True)
class StatusConfig:
    """Workflow state names used by the task store."""

    terminal: tuple[str, ...] = ("Processed", "Resolved")
    not_started: str = "Not Started"
    upcoming: str = "Upcoming"
    review: str = "Needs Review"
    unscheduled: str = "Unprocessed"

    def is_terminal(self, status: str | None) -> bool:
        return status in self.terminal

    def is_active(self, status: str | None) -> bool:
        """Neither finished nor parked in the not-yet-started state."""
        return not self.is_terminal(status) and status != self.not_started

    def excluded_from_active(self) -> tuple[str, ...]:
        return (*self.terminal, self.not_started)


@dataclass(frozen=True)
class PropertyNames:
    """Configured task-store property names; None means detect by type."""

    title: str | None = None
    date: str | None = None
    type: str = "Type"
    status: str = "Status"
    estimate: str | None = "Estimated Minutes"


@dataclass(frozen=True)
class Intervals:
    """Timer cadence for the daemon."""

    conflict_minutes: float = 30
    optimize_minutes: float = 2
    notify_minutes: float = 5
    conflict_initial_delay_seconds: float = 30
    optimize_initial_delay_seconds: float = 60
    notify_initial_delay_seconds: float = 30


@dataclass(frozen=True)
class NotionSettings:
    token: str | None = None
    database_id: str | None = None
    base_url: str = "https://api.notion.com/v1"
    version: str = "2022-06-28"
    timeout_seconds: float = 30.0
    page_size: int = 100

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.database_id)


@dataclass(frozen=True)
class SlackSettings:
    webhook_url: str | None = None
    dry_run: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)


@dataclass(frozen=True)
class EngineConfig:
    """Everything the engine needs to run, resolved once at startup."""

    timezone: str = "America/New_York"
    relocation_window: WorkWindow = field(
        default_factory=lambda: WorkWindow(start=time(8, 0), end=time(16, 30))
    )
    scheduling_window: WorkWindow = field(
        default_factory=lambda: WorkWindow(start=time(8, 30), end=time(16, 30), buffer_minutes=10)
    )
    statuses: StatusConfig = field(default_factory=StatusConfig)
    properties: PropertyNames = field(default_factory=PropertyNames)
    intervals: Intervals = field(default_factory=Intervals)
    notion: NotionSettings = field(default_factory=NotionSettings)
    slack: SlackSettings = field(default_factory=SlackSettings)

    mental_break_minutes: int = 15
    stale_after_minutes: int = 15
    min_gap_minutes: int = 5
    min_task_minutes: int = 10
    overbooked_minutes: int = 480
    verify_tolerance_seconds: float = 60.0
    max_days_ahead: int = 30
    conflict_horizon_days: int = 14
    notify_window_minutes: int = 15
    alert_cache_size: int = 100
    retry_delay_seconds: float = 2.0
    relocate_out_of_window: bool = True
    max_auto_move_minutes: int | None = None
    gap_fill_max_minutes: int | None = None
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# ============================================================
# Loading
# ============================================================


def _parse_time(value: Any, key: str) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # YAML reads 08:30 as sexagesimal minutes
        return time(value // 60, value % 60)
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError as e:
        raise ConfigError(f"{key}: expected HH:MM, got {value!r}") from e


def _parse_window(data: dict | None, default: WorkWindow, key: str) -> WorkWindow:
    if not data:
        return default
    if not isinstance(data, dict):
        raise ConfigError(f"{key}: expected a mapping")
    window = WorkWindow(
        start=_parse_time(data.get("start", default.start), f"{key}.start"),
        end=_parse_time(data.get("end", default.end), f"{key}.end"),
        buffer_minutes=int(data.get("buffer_minutes", default.buffer_minutes)),
        workdays=tuple(data.get("workdays", default.workdays)),
    )
    if window.start >= window.end:
        raise ConfigError(f"{key}: start must be before end")
    return window


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key}: expected a mapping")
    return value


def _pick(data: dict, cls, **extra):
    """Build a dataclass from the keys it declares, ignoring the rest."""
    known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
    known.update({k: v for k, v in extra.items() if v is not None})
    return cls(**known)


# Built from their own sections, never from scheduling.*
EXPLICIT_FIELDS = frozenset(
    {
        "timezone",
        "relocation_window",
        "scheduling_window",
        "statuses",
        "properties",
        "intervals",
        "notion",
        "slack",
        "log_level",
    }
)


def config_from_dict(raw: dict) -> EngineConfig:
    """Build an EngineConfig from a parsed YAML mapping (env overrides applied)."""
    defaults = EngineConfig()
    scheduling = _section(raw, "scheduling")

    statuses_raw = _section(raw, "statuses")
    if "terminal" in statuses_raw:
        statuses_raw = {**statuses_raw, "terminal": tuple(statuses_raw["terminal"])}

    notion_raw = _section(raw, "notion")
    slack_raw = _section(raw, "slack")

    top_level = {
        k: v
        for k, v in scheduling.items()
        if k in EngineConfig.__dataclass_fields__
        and k not in EXPLICIT_FIELDS
    }

    config = EngineConfig(
        timezone=os.environ.get(ENV_TIMEZONE) or raw.get("timezone", defaults.timezone),
        relocation_window=_parse_window(
            scheduling.get("relocation_window"),
            defaults.relocation_window,
            "scheduling.relocation_window",
        ),
        scheduling_window=_parse_window(
            scheduling.get("scheduling_window"),
            defaults.scheduling_window,
            "scheduling.scheduling_window",
        ),
        statuses=_pick(statuses_raw, StatusConfig),
        properties=_pick(_section(raw, "properties"), PropertyNames),
        intervals=_pick(_section(raw, "intervals"), Intervals),
        notion=_pick(
            notion_raw,
            NotionSettings,
            token=os.environ.get(ENV_NOTION_TOKEN),
            database_id=os.environ.get(ENV_NOTION_DATABASE_ID),
        ),
        slack=_pick(slack_raw, SlackSettings, webhook_url=os.environ.get(ENV_SLACK_WEBHOOK_URL)),
        log_level=os.environ.get(ENV_LOG_LEVEL) or raw.get("log_level", defaults.log_level),
        **top_level,
    )

    try:
        config.tz
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {config.timezone!r}") from e

    return config


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load the schedule config, falling back to defaults when the file is missing."""
    if config_path is None:
        config_path = paths.config_path()

    if not config_path.exists():
        logger.warning("Schedule config not found at %s, using defaults", config_path)
        return config_from_dict({})

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    return config_from_dict(raw)
