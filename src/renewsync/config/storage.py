"""Database location helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / "renewsync"


def get_database_config() -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file under ``RENEWSYNC_DATA_DIR``."""

    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri)
    env_dir = os.getenv("RENEWSYNC_DATA_DIR")
    data_dir = (Path(env_dir) if env_dir else _default_data_dir()).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{data_dir / 'renewsync.db'}")
