from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "SLOTKEEPER_HOME"
APP_ENV_CONFIG = "SLOTKEEPER_CONFIG"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains slotkeeper/, api/, config/ and tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for SlotKeeper.
    Override with SLOTKEEPER_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".slotkeeper").resolve()


def config_dir() -> Path:
    d = app_home() / "config"
    d.mkdir(parents=True, exist_ok=True)
    return d


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def config_path() -> Path:
    """
    Schedule config file.

    Resolution order:
    1. SLOTKEEPER_CONFIG env var (explicit override)
    2. $SLOTKEEPER_HOME/config/schedule.yaml when it exists
    3. <project root>/config/schedule.yaml (shipped defaults)
    """
    if os.environ.get(APP_ENV_CONFIG):
        return Path(os.environ[APP_ENV_CONFIG]).expanduser().resolve()
    home_config = app_home() / "config" / "schedule.yaml"
    if home_config.exists():
        return home_config
    return project_root() / "config" / "schedule.yaml"
