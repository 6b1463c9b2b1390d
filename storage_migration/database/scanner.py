"""Discovery of legacy scoped storage files.

Legacy databases are named ``<prefix><scopeId>`` and may be accompanied by
``-journal``, ``-wal`` and ``-shm`` sidecars. Classification looks at the file
name only; file contents are never inspected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from ..loggers import get_logger


LOGGER = get_logger("storage_migration.database.scanner")

JOURNAL_SUFFIX = "-journal"
WAL_SUFFIX = "-wal"
SHM_SUFFIX = "-shm"
SIDECAR_SUFFIXES = (JOURNAL_SUFFIX, SHM_SUFFIX, WAL_SUFFIX)

NamePredicate = Callable[[str], bool]


class LegacyFileKind(Enum):
    """Role of a legacy file, derived from its name suffix."""

    PRIMARY = "primary"
    WAL = "wal"
    SHM = "shm"
    JOURNAL = "journal"


@dataclass(slots=True)
class LegacyDatabaseFile:
    """A legacy storage file found on disk."""

    path: Path
    name: str
    timestamp: Optional[float]
    kind: LegacyFileKind

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "timestamp": self.timestamp,
            "kind": self.kind.value,
        }


def classify_legacy_file(name: str) -> LegacyFileKind:
    if name.endswith(WAL_SUFFIX):
        return LegacyFileKind.WAL
    if name.endswith(SHM_SUFFIX):
        return LegacyFileKind.SHM
    if name.endswith(JOURNAL_SUFFIX):
        return LegacyFileKind.JOURNAL
    return LegacyFileKind.PRIMARY


def is_any_legacy_file(name: str, prefix: str) -> bool:
    """Return ``True`` for every file of the legacy naming scheme."""
    return name.startswith(prefix)


def is_primary_legacy_candidate(name: str, prefix: str) -> bool:
    """Return ``True`` for legacy primary databases, skipping journals and WAL files."""
    return is_any_legacy_file(name, prefix) and not name.endswith(SIDECAR_SUFFIXES)


class FileScanner:
    """Lists directory entries whose names satisfy a predicate.

    Every call re-reads the directory. Listing failures are logged and
    reported as an empty result.
    """

    def list_files(self, directory: Path, predicate: NamePredicate) -> List[Path]:
        """Return matching entries of ``directory``, sorted by name.

        Args:
            directory: Directory to list
            predicate: Pure function of the entry name

        Returns:
            Matching paths; empty if the directory is missing or unreadable
        """
        directory = Path(directory)
        try:
            names = os.listdir(directory)
        except FileNotFoundError:
            LOGGER.debug("Storage directory %s does not exist", directory)
            return []
        except OSError as exc:
            LOGGER.warning("Could not list storage directory %s: %s", directory, exc)
            return []

        return [directory / name for name in sorted(names) if predicate(name)]

    def list_primary_candidates(self, directory: Path, prefix: str) -> List[Path]:
        return self.list_files(directory, partial(is_primary_legacy_candidate, prefix=prefix))

    def list_legacy_files(self, directory: Path, prefix: str) -> List[Path]:
        return self.list_files(directory, partial(is_any_legacy_file, prefix=prefix))


def describe_legacy_files(
    directory: Path,
    prefix: str,
    timestamp_of: Callable[[Path], Optional[float]],
    scanner: Optional[FileScanner] = None,
) -> List[LegacyDatabaseFile]:
    """Build :class:`LegacyDatabaseFile` records for every legacy file.

    Args:
        directory: Storage directory
        prefix: Legacy name prefix
        timestamp_of: Timestamp lookup, e.g. a timestamp provider
        scanner: Scanner to use, defaults to a new :class:`FileScanner`
    """
    scanner = scanner or FileScanner()
    return [
        LegacyDatabaseFile(
            path=path,
            name=path.name,
            timestamp=timestamp_of(path),
            kind=classify_legacy_file(path.name),
        )
        for path in scanner.list_legacy_files(directory, prefix)
    ]
