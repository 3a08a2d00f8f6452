"""
SlotKeeper — Event Highlighter

Read-only scan run on its own timer. Items starting within the lookahead
window, or currently in progress, form the highlight set; items that have
just come within the window are announced once per start time.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from slotkeeper.config import EngineConfig
from slotkeeper.models import ScheduleItem
from slotkeeper.notifier import Notifier
from slotkeeper.notifier import messages
from slotkeeper.resilience import BoundedIdCache
from slotkeeper.task_store import ItemFilter, SortSpec, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class HighlightedEvent:
    id: str
    title: str
    item_type: str
    start: datetime
    end: datetime
    minutes_until: int
    in_progress: bool

    @classmethod
    def from_item(cls, item: ScheduleItem, now: datetime) -> "HighlightedEvent":
        end = item.effective_end
        in_progress = item.start <= now <= end
        minutes = 0 if in_progress else round((item.start - now).total_seconds() / 60)
        return cls(
            id=item.id,
            title=item.title,
            item_type=str(item.item_type),
            start=item.start,
            end=end,
            minutes_until=minutes,
            in_progress=in_progress,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.item_type,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "time": messages.format_time(self.start),
            "minutes_until": self.minutes_until,
            "in_progress": self.in_progress,
        }


@dataclass
class HighlightResult:
    highlighted: list[HighlightedEvent] = field(default_factory=list)
    newly_upcoming: list[HighlightedEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "highlighted": [e.to_dict() for e in self.highlighted],
            "newly_upcoming": [e.to_dict() for e in self.newly_upcoming],
        }


HighlightCallback = Callable[[list[HighlightedEvent]], Any]


class EventHighlighter:
    def __init__(
        self,
        store: TaskStore,
        config: EngineConfig,
        notifier: Notifier,
        on_highlight: HighlightCallback | None = None,
        alerted: BoundedIdCache | None = None,
    ):
        self.store = store
        self.config = config
        self.notifier = notifier
        self.on_highlight = on_highlight
        self.alerted = alerted or BoundedIdCache(config.alert_cache_size)

    async def check_upcoming_events(self, now: datetime) -> HighlightResult:
        today = now.date()
        items = await self.store.query(
            ItemFilter(
                exclude_statuses=self.config.statuses.excluded_from_active(),
                on_or_after=today - timedelta(days=1),
                on_or_before=today + timedelta(days=1),
            ),
            SortSpec(),
        )

        result = HighlightResult()
        window = self.config.notify_window_minutes

        for item in items:
            if not item.is_timed:
                continue
            minutes_until = (item.start - now).total_seconds() / 60
            upcoming = 0 <= minutes_until <= window
            in_progress = item.start <= now <= item.effective_end
            if not (upcoming or in_progress):
                continue

            event = HighlightedEvent.from_item(item, now)
            result.highlighted.append(event)

            key = f"{item.id}@{item.start.isoformat()}"
            if upcoming and key not in self.alerted:
                self.alerted.add(key)
                result.newly_upcoming.append(event)

        logger.info(
            f"{len(result.highlighted)} event(s) to highlight "
            f"({len(result.newly_upcoming)} newly upcoming)"
        )

        if self.on_highlight is not None:
            outcome = self.on_highlight(result.highlighted)
            if inspect.isawaitable(outcome):
                await outcome

        if result.newly_upcoming:
            await self.notifier.announce(messages.upcoming_events(result.newly_upcoming))

        return result
