"""Selection of the most recent legacy database.

If an app was published under several scopes over its history, one legacy
database exists per scope. The most recent one is the one to migrate.

Timestamps come from a :class:`TimestampProvider`. Creation time is preferred
where the platform reports it; otherwise modification time is used. A failed
lookup yields :data:`UNKNOWN_TIMESTAMP` (``None``), which never wins a
comparison, even against timestamps before 1970.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from ..loggers import get_logger


LOGGER = get_logger("storage_migration.database.recency")

UNKNOWN_TIMESTAMP = None

TIMESTAMP_SOURCES = ("auto", "creation", "modification")


class TimestampProvider(ABC):
    """Returns a file timestamp in milliseconds."""

    name = "abstract"

    def __call__(self, path: Path) -> Optional[int]:
        return self.timestamp(path)

    def timestamp(self, path: Path) -> Optional[int]:
        """Return the timestamp of ``path`` or :data:`UNKNOWN_TIMESTAMP`."""
        try:
            return int(self._read(os.stat(path)) * 1000)
        except (OSError, AttributeError, ValueError, OverflowError) as exc:
            LOGGER.debug("No %s time for %s: %s", self.name, path, exc)
            return UNKNOWN_TIMESTAMP

    @abstractmethod
    def _read(self, stat_result: os.stat_result) -> float:
        """Extract the timestamp in seconds from a stat result."""


class CreationTimeProvider(TimestampProvider):
    """Uses the filesystem-reported creation (birth) time."""

    name = "creation"

    def _read(self, stat_result: os.stat_result) -> float:
        return stat_result.st_birthtime


class ModificationTimeProvider(TimestampProvider):
    """Uses the last modification time."""

    name = "modification"

    def _read(self, stat_result: os.stat_result) -> float:
        return stat_result.st_mtime


def supports_creation_time(probe: Path) -> bool:
    """Return ``True`` if ``os.stat`` reports a birth time for ``probe``."""
    try:
        return getattr(os.stat(probe), "st_birthtime", None) is not None
    except OSError:
        return False


def select_timestamp_provider(
    preference: str = "auto",
    probe: Optional[Path] = None,
) -> TimestampProvider:
    """Pick the timestamp provider for this platform.

    Args:
        preference: ``"auto"``, ``"creation"`` or ``"modification"``
        probe: Existing path used for the capability check, defaults to the
            current directory

    Raises:
        ValueError: If ``preference`` is not a known source
    """
    if preference not in TIMESTAMP_SOURCES:
        raise ValueError(
            f"Unknown timestamp source {preference!r}; expected one of {TIMESTAMP_SOURCES}"
        )
    if preference == "modification":
        return ModificationTimeProvider()
    if preference == "creation":
        return CreationTimeProvider()

    if supports_creation_time(Path(probe) if probe is not None else Path(".")):
        return CreationTimeProvider()
    return ModificationTimeProvider()


def pick_most_recent(
    files: Sequence[Path],
    provider: TimestampProvider,
) -> Optional[Path]:
    """Return the most recent file of ``files``.

    Ties keep the first file seen. When no timestamp can be read, the first
    file is returned. ``None`` is returned only for an empty input.
    """
    if not files:
        return None

    latest_time: Optional[int] = None
    latest_file: Optional[Path] = None
    for candidate in files:
        candidate_time = provider(candidate)
        if candidate_time is UNKNOWN_TIMESTAMP:
            continue
        if latest_file is None or candidate_time > latest_time:
            latest_time = candidate_time
            latest_file = candidate

    if latest_file is None:
        LOGGER.debug("No timestamps available, using %s", files[0])
        return files[0]
    return latest_file
