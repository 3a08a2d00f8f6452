# SlotKeeper - Core Library
"""
Exports for cli.py, api/ and other consumers.
"""

__version__ = "0.1.0"

from .config import EngineConfig, load_config
from .engine import ScheduleEngine
from .models import ItemPatch, ItemType, ScheduleItem

__all__ = [
    "EngineConfig",
    "ItemPatch",
    "ItemType",
    "ScheduleEngine",
    "ScheduleItem",
    "load_config",
]
