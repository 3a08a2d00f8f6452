"""Task store backends."""

from .notion_store import NotionTaskStore

__all__ = ["NotionTaskStore"]
