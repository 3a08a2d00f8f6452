"""
NotionTaskStore - TaskStore backed by a Notion database.

Reads and writes pages through the Notion REST API with httpx. Property
names come from the PropertyMap resolved against the database schema on
connect(); a database missing a required property fails there, not mid-pass.
"""

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import httpx

from slotkeeper.config import NotionSettings, PropertyNames
from slotkeeper.errors import ItemNotFound, TaskStoreError, TaskStoreUnavailable
from slotkeeper.models import ItemPatch, ItemType, ScheduleItem
from slotkeeper.resilience import NETWORK_ERRORS, retry_once
from slotkeeper.schema import PropertyMap, SchemaProperty, StoreSchema, resolve_property_map
from slotkeeper.task_store import ItemFilter, SortSpec

logger = logging.getLogger(__name__)


class RateLimited(TaskStoreError):
    """HTTP 429 from the Notion API."""


RETRYABLE = (*NETWORK_ERRORS, RateLimited)


def _plain_text(rich_text: list[dict]) -> str:
    return "".join(part.get("plain_text", "") for part in rich_text or [])


def parse_notion_date(value: str | None, tz: ZoneInfo) -> datetime | date | None:
    """Notion date strings are either YYYY-MM-DD or a full ISO timestamp."""
    if not value:
        return None
    if "T" not in value:
        return date.fromisoformat(value)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def _format_date(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


class NotionTaskStore:
    """Async TaskStore over one Notion database."""

    def __init__(
        self,
        settings: NotionSettings,
        tz: ZoneInfo,
        property_names: PropertyNames | None = None,
        retry_delay: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not settings.is_configured:
            raise ValueError(
                "Notion token and database id are required. Set SLOTKEEPER_NOTION_TOKEN "
                "and SLOTKEEPER_NOTION_DATABASE_ID."
            )
        self.settings = settings
        self.tz = tz
        self.property_names = property_names or PropertyNames()
        self.retry_delay = retry_delay
        self.property_map: PropertyMap | None = None
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={
                "Authorization": f"Bearer {settings.token}",
                "Notion-Version": settings.version,
                "Content-Type": "application/json",
            },
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "NotionTaskStore":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------

    async def _request(self, method: str, path: str, json_data: dict | None = None) -> dict:
        async def attempt() -> dict:
            response = await self._client.request(method, path, json=json_data)
            if response.status_code == 429:
                raise RateLimited("Notion API rate limited", http_status=429)
            if response.status_code == 404:
                raise ItemNotFound(f"Not found: {path}", http_status=404)
            if response.status_code >= 400:
                try:
                    detail = response.json().get("message", response.text[:200])
                except ValueError:
                    detail = response.text[:200]
                raise TaskStoreError(
                    f"Notion API error {response.status_code}: {detail}",
                    http_status=response.status_code,
                )
            return response.json()

        try:
            return await retry_once(
                attempt,
                delay=self.retry_delay,
                retry_on=RETRYABLE,
                description=f"Notion {method} {path}",
            )
        except RETRYABLE as e:
            raise TaskStoreUnavailable(f"Notion {method} {path} failed after retry: {e}") from e

    # ------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------

    async def get_schema(self) -> StoreSchema:
        data = await self._request("GET", f"/databases/{self.settings.database_id}")
        properties = []
        for name, spec in data.get("properties", {}).items():
            prop_type = spec.get("type", "")
            type_config = spec.get(prop_type)
            options = type_config.get("options", []) if isinstance(type_config, dict) else []
            properties.append(
                SchemaProperty(
                    name=name,
                    type=prop_type,
                    options=tuple(o["name"] for o in options if "name" in o),
                )
            )
        return StoreSchema(title=_plain_text(data.get("title", [])), properties=tuple(properties))

    async def connect(self) -> PropertyMap:
        """Resolve the property map; raises SchemaMappingError on a bad database."""
        schema = await self.get_schema()
        self.property_map = resolve_property_map(schema, self.property_names)
        logger.info(f"Connected to Notion database '{schema.title or self.settings.database_id}'")
        return self.property_map

    async def _mapping(self) -> PropertyMap:
        if self.property_map is None:
            await self.connect()
        return self.property_map

    # ------------------------------------------------------------
    # Filters and parsing
    # ------------------------------------------------------------

    def build_filter(self, item_filter: ItemFilter, mapping: PropertyMap) -> dict | None:
        """
        Translate an ItemFilter into a Notion compound filter.

        Date bounds are widened by a day: Notion compares in UTC, and the
        exact bound is applied locally after the query.
        """
        clauses: list[dict] = []

        for status in item_filter.exclude_statuses:
            clauses.append(
                {"property": mapping.status, mapping.status_kind: {"does_not_equal": status}}
            )
        if item_filter.status_in:
            clauses.append(
                {
                    "or": [
                        {"property": mapping.status, mapping.status_kind: {"equals": s}}
                        for s in item_filter.status_in
                    ]
                }
            )
        if item_filter.types:
            op = "contains" if mapping.type_kind == "multi_select" else "equals"
            clauses.append(
                {
                    "or": [
                        {"property": mapping.type, mapping.type_kind: {op: str(t)}}
                        for t in item_filter.types
                    ]
                }
            )
        if item_filter.dated_only or item_filter.on_or_after or item_filter.on_or_before:
            clauses.append({"property": mapping.date, "date": {"is_not_empty": True}})
        if item_filter.on_or_after:
            after = item_filter.on_or_after - timedelta(days=1)
            clauses.append({"property": mapping.date, "date": {"on_or_after": after.isoformat()}})
        if item_filter.on_or_before:
            before = item_filter.on_or_before + timedelta(days=1)
            clauses.append(
                {"property": mapping.date, "date": {"on_or_before": before.isoformat()}}
            )

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"and": clauses}

    def parse_page(self, page: dict, mapping: PropertyMap) -> ScheduleItem:
        props = page.get("properties", {})

        title = _plain_text(props.get(mapping.title, {}).get("title", [])) or "Untitled"

        date_value = props.get(mapping.date, {}).get("date") or {}
        start = parse_notion_date(date_value.get("start"), self.tz)
        end = parse_notion_date(date_value.get("end"), self.tz)
        if not isinstance(end, datetime):
            end = None

        type_prop = props.get(mapping.type, {})
        if mapping.type_kind == "multi_select":
            names = [o.get("name") for o in type_prop.get("multi_select") or []]
            type_name = names[0] if names else None
        else:
            type_name = (type_prop.get("select") or {}).get("name")
        try:
            item_type = ItemType(type_name)
        except ValueError:
            item_type = ItemType.TASK

        status = (props.get(mapping.status, {}).get(mapping.status_kind) or {}).get("name")

        estimate = None
        if mapping.estimate:
            number = props.get(mapping.estimate, {}).get("number")
            estimate = int(number) if number else None

        return ScheduleItem(
            id=page["id"],
            title=title,
            item_type=item_type,
            status=status,
            start=start,
            end=end,
            estimated_minutes=estimate,
            raw=page,
        )

    # ------------------------------------------------------------
    # TaskStore
    # ------------------------------------------------------------

    async def query(
        self, item_filter: ItemFilter | None = None, sort: SortSpec | None = None
    ) -> list[ScheduleItem]:
        """All pages matching the filter, following Notion's cursor pagination."""
        mapping = await self._mapping()
        item_filter = item_filter or ItemFilter()

        body: dict = {"page_size": self.settings.page_size}
        notion_filter = self.build_filter(item_filter, mapping)
        if notion_filter:
            body["filter"] = notion_filter
        if sort:
            body["sorts"] = [
                {
                    "property": mapping.date if sort.field == "start" else sort.field,
                    "direction": "ascending" if sort.ascending else "descending",
                }
            ]

        items: list[ScheduleItem] = []
        path = f"/databases/{self.settings.database_id}/query"
        while True:
            data = await self._request("POST", path, json_data=body)
            for page in data.get("results", []):
                if page.get("archived") or page.get("in_trash"):
                    continue
                items.append(self.parse_page(page, mapping))
            if not data.get("has_more"):
                break
            body = {**body, "start_cursor": data["next_cursor"]}

        matched = [i for i in items if item_filter.matches(i)]
        logger.debug(f"Query returned {len(matched)} items ({len(items)} before local filter)")
        return matched

    async def get_item(self, item_id: str) -> ScheduleItem:
        mapping = await self._mapping()
        page = await self._request("GET", f"/pages/{item_id}")
        return self.parse_page(page, mapping)

    def patch_properties(self, patch: ItemPatch, mapping: PropertyMap) -> dict:
        properties: dict = {}
        if patch.start is not None:
            properties[mapping.date] = {
                "date": {"start": _format_date(patch.start), "end": _format_date(patch.end)}
            }
        if patch.status:
            properties[mapping.status] = {mapping.status_kind: {"name": patch.status}}
        return properties

    async def update_item(self, item_id: str, patch: ItemPatch) -> ScheduleItem:
        mapping = await self._mapping()
        body = {"properties": self.patch_properties(patch, mapping)}
        page = await self._request("PATCH", f"/pages/{item_id}", json_data=body)
        return self.parse_page(page, mapping)
