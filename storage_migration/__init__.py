"""Scoped legacy storage migration.

Moves the most recent ``RKStorage-scoped-experience-*`` database (and its
WAL sidecars) to the ``RKStorage`` file expected by the storage engine.
"""

from .database.migration import (
    DEFAULT_LEGACY_PREFIX,
    DEFAULT_TARGET_NAME,
    MigrationOutcome,
    MigrationReport,
    ScopedStorageMigrator,
    migrate,
)
from .database.supplier import SQLiteStorageSupplier, StorageInitializer

__version__ = "1.0.0"

__all__ = [
    "DEFAULT_LEGACY_PREFIX",
    "DEFAULT_TARGET_NAME",
    "MigrationOutcome",
    "MigrationReport",
    "SQLiteStorageSupplier",
    "ScopedStorageMigrator",
    "StorageInitializer",
    "migrate",
]
