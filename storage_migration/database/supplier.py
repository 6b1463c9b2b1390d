"""
Storage-engine collaborator that guarantees the target database exists.

The migration copies bytes over the file the storage engine owns; before it
does, the engine must have created that file (and any parent directories).
"""

import sqlite3
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..loggers import get_logger

LOGGER = get_logger("storage_migration.database.supplier")

DATABASE_NAME = "RKStorage"
TABLE_CATALYST = "catalystLocalStorage"
KEY_COLUMN = "key"
VALUE_COLUMN = "value"

CREATE_TABLE_SQL = (
    f"CREATE TABLE IF NOT EXISTS {TABLE_CATALYST} ("
    f"{KEY_COLUMN} TEXT PRIMARY KEY, "
    f"{VALUE_COLUMN} TEXT NOT NULL)"
)


@runtime_checkable
class StorageInitializer(Protocol):
    """Anything that can make sure the target storage file exists."""

    def ensure_initialized(self) -> Path:
        """Create the storage file if needed and return its path."""
        ...


class SQLiteStorageSupplier:
    """Creates the key-value SQLite database used by the storage engine."""

    def __init__(self, database_path: Path, timeout: float = 5.0):
        self.database_path = Path(database_path)
        self.timeout = timeout

    def ensure_initialized(self) -> Path:
        """Create the database file and its table if they do not exist yet.

        Raises:
            sqlite3.Error: If the database cannot be created
            OSError: If the parent directory cannot be created
        """
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.database_path), timeout=self.timeout)
        try:
            conn.execute(CREATE_TABLE_SQL)
            conn.commit()
        finally:
            conn.close()
        LOGGER.debug("Storage database ready at %s", self.database_path)
        return self.database_path
