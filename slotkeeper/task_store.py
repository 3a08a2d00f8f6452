"""
Task store contract consumed by the engine.

Implementations must return complete result sets from query() (paginating
internally) and raise TaskStoreUnavailable after a failed retry.
"""

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from slotkeeper.models import ItemPatch, ScheduleItem
from slotkeeper.schema import StoreSchema


@dataclass(frozen=True)
class ItemFilter:
    """Store-agnostic query filter; all conditions are ANDed."""

    exclude_statuses: tuple[str, ...] = ()
    status_in: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    dated_only: bool = False
    on_or_after: date | None = None
    on_or_before: date | None = None

    def matches(self, item: ScheduleItem) -> bool:
        """In-memory evaluation, same semantics the remote store applies."""
        if self.exclude_statuses and item.status in self.exclude_statuses:
            return False
        if self.status_in and item.status not in self.status_in:
            return False
        if self.types and item.item_type not in self.types:
            return False
        if (self.dated_only or self.on_or_after or self.on_or_before) and not item.is_dated:
            return False
        if self.on_or_after and item.day < self.on_or_after:
            return False
        if self.on_or_before and item.day > self.on_or_before:
            return False
        return True


@dataclass(frozen=True)
class SortSpec:
    field: str = "start"
    ascending: bool = True


class TaskStore(Protocol):
    async def query(
        self, item_filter: ItemFilter | None = None, sort: SortSpec | None = None
    ) -> list[ScheduleItem]: ...

    async def get_schema(self) -> StoreSchema: ...

    async def update_item(self, item_id: str, patch: ItemPatch) -> ScheduleItem: ...

    async def get_item(self, item_id: str) -> ScheduleItem: ...
