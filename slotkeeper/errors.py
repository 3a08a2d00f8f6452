"""
Exception hierarchy for SlotKeeper.

Nothing raised here is fatal to the host process: passes catch these,
record a failed phase and carry on at the next tick.
"""


class SlotKeeperError(Exception):
    """Base class for all SlotKeeper errors."""


class ConfigError(SlotKeeperError):
    """Configuration file or environment override is malformed."""


class SchemaMappingError(SlotKeeperError):
    """The task store schema lacks a property the engine requires."""

    def __init__(self, missing: list[str], available: list[str] | None = None):
        self.missing = missing
        self.available = available or []
        detail = f"missing required properties: {', '.join(missing)}"
        if self.available:
            detail += f" (store declares: {', '.join(self.available)})"
        super().__init__(detail)


class TaskStoreError(SlotKeeperError):
    """The task store rejected a request."""

    def __init__(self, message: str, http_status: int | None = None):
        self.http_status = http_status
        super().__init__(message)


class TaskStoreUnavailable(TaskStoreError):
    """Network-class failure that persisted after the single retry."""


class ItemNotFound(TaskStoreError):
    """The requested item does not exist in the task store."""
