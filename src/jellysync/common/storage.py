"""Data storage helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "jellysync"
DEFAULT_DB_FILENAME: Final[str] = "contracts.db"


def get_data_dir() -> Path:
    """Return the directory where jellysync stores persistent data."""

    env_dir = os.getenv("JELLYSYNC_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")

    return (base_path / APP_DIR_NAME).expanduser().resolve()


def ensure_data_dir(path: Path | None = None) -> Path:
    """Ensure the data directory exists and return it."""

    data_dir = path or get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_database_uri() -> str:
    """Compute the contract store URI, respecting ``DATABASE_URI``."""

    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return env_uri
    db_path = ensure_data_dir() / DEFAULT_DB_FILENAME
    return f"sqlite+pysqlite:///{db_path}"
