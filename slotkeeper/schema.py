"""
Typed mapping between the engine's fields and task-store properties.

Resolved once at startup against the store's declared schema. A store that
lacks a title, date, type or status property fails fast with
SchemaMappingError instead of failing item by item mid-pass.
"""

import logging
from dataclasses import dataclass, field

from slotkeeper.config import PropertyNames
from slotkeeper.errors import SchemaMappingError
from slotkeeper.models import ItemType

logger = logging.getLogger(__name__)

STATUS_KINDS = ("status", "select")


@dataclass(frozen=True)
class SchemaProperty:
    name: str
    type: str
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class StoreSchema:
    title: str = ""
    properties: tuple[SchemaProperty, ...] = field(default_factory=tuple)

    def find(self, name: str) -> SchemaProperty | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def first_of_type(self, prop_type: str) -> SchemaProperty | None:
        for prop in self.properties:
            if prop.type == prop_type:
                return prop
        return None


@dataclass(frozen=True)
class PropertyMap:
    """Concrete property names (and kinds) used to read and write items."""

    title: str
    date: str
    type: str
    status: str
    status_kind: str = "status"
    type_kind: str = "select"
    estimate: str | None = None


def _resolve_named(schema: StoreSchema, name: str | None, prop_type: str) -> SchemaProperty | None:
    if name:
        prop = schema.find(name)
        if prop is not None and prop.type != prop_type:
            logger.warning("Property %r has type %s, expected %s", name, prop.type, prop_type)
            return None
        return prop
    return schema.first_of_type(prop_type)


def resolve_property_map(schema: StoreSchema, names: PropertyNames) -> PropertyMap:
    """
    Map configured property names onto the store schema.

    Raises:
        SchemaMappingError: when a required property is absent
    """
    missing: list[str] = []

    title = _resolve_named(schema, names.title, "title")
    if title is None:
        missing.append(names.title or "<title property>")

    date_prop = _resolve_named(schema, names.date, "date")
    if date_prop is None:
        missing.append(names.date or "<date property>")

    type_prop = schema.find(names.type)
    if type_prop is None or type_prop.type not in ("select", "multi_select"):
        missing.append(names.type)

    status_prop = schema.find(names.status)
    if status_prop is None or status_prop.type not in STATUS_KINDS:
        missing.append(names.status)

    if missing:
        raise SchemaMappingError(missing, [p.name for p in schema.properties])

    estimate = None
    if names.estimate:
        estimate_prop = schema.find(names.estimate)
        if estimate_prop is not None and estimate_prop.type == "number":
            estimate = estimate_prop.name
        else:
            logger.warning(
                "Estimate property %r not found; falling back to type defaults", names.estimate
            )

    if type_prop.options:
        unknown = {t.value for t in ItemType} - set(type_prop.options)
        if unknown:
            logger.info("Type property has no option for: %s", ", ".join(sorted(unknown)))

    mapping = PropertyMap(
        title=title.name,
        date=date_prop.name,
        type=type_prop.name,
        status=status_prop.name,
        status_kind=status_prop.type,
        type_kind=type_prop.type,
        estimate=estimate,
    )
    logger.debug("Resolved property map: %s", mapping)
    return mapping
