"""Where Timekeeper keeps its SQLite database and offline records."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_path

DATA_DIR_ENV = "TIMEKEEPER_DATA_DIR"
DB_FILENAME = "timekeeper.sqlite3"
LOCAL_STORE_FILENAME = "local-records.json"


def get_data_dir() -> Path:
    """Data directory, from ``TIMEKEEPER_DATA_DIR`` or the per-user default."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        path = user_data_path(appname="Timekeeper", appauthor=False, roaming=True)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_local_store_path() -> Path:
    """JSON file used when the web API cannot be reached."""
    return get_data_dir() / LOCAL_STORE_FILENAME
