"""
Shared test fixtures for the storage migration test-suite.

Fixtures build storage directories holding scoped legacy databases, WAL
sidecars and journals, and provide fake storage-engine initializers.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from storage_migration.config import Config
from storage_migration.database.migration import DEFAULT_LEGACY_PREFIX, DEFAULT_TARGET_NAME


# ============================================================================
# Helpers
# ============================================================================

class FakeInitializer:
    """Storage-engine stand-in that creates an empty target file."""

    def __init__(self, target: Path):
        self.target = target
        self.calls = 0

    def ensure_initialized(self) -> Path:
        self.calls += 1
        self.target.parent.mkdir(parents=True, exist_ok=True)
        self.target.touch()
        return self.target


class FailingInitializer:
    """Storage-engine stand-in whose initialization always fails."""

    def __init__(self):
        self.calls = 0

    def ensure_initialized(self) -> Path:
        self.calls += 1
        raise RuntimeError("storage engine unavailable")


class FixedTimestamps:
    """Timestamp provider returning predefined values by file name."""

    name = "fixed"

    def __init__(self, values: Dict[str, int], default: Optional[int] = None):
        self.values = values
        self.default = default
        self.seen: List[str] = []

    def __call__(self, path: Path) -> Optional[int]:
        self.seen.append(Path(path).name)
        return self.values.get(Path(path).name, self.default)


def write_file(path: Path, content: bytes, mtime: float = None) -> Path:
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


# ============================================================================
# Core Fixtures
# ============================================================================

@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Empty application database directory."""
    directory = tmp_path / "databases"
    directory.mkdir()
    return directory


@pytest.fixture
def legacy_prefix() -> str:
    return DEFAULT_LEGACY_PREFIX


@pytest.fixture
def target_path(storage_dir: Path) -> Path:
    return storage_dir / DEFAULT_TARGET_NAME


@pytest.fixture
def fake_initializer(target_path: Path) -> FakeInitializer:
    return FakeInitializer(target_path)


@pytest.fixture
def make_legacy(storage_dir: Path, legacy_prefix: str):
    """Factory creating ``<prefix><scope><suffix>`` files in the storage directory."""

    def _make(scope: str, content: bytes = b"", suffix: str = "", mtime: float = None) -> Path:
        return write_file(storage_dir / f"{legacy_prefix}{scope}{suffix}", content, mtime)

    return _make


@pytest.fixture
def scoped_layout(make_legacy) -> Dict[str, Path]:
    """Two scoped databases; ``new`` is the most recently modified one.

    ``new`` has a WAL sidecar but no SHM sidecar; ``old`` has a journal.
    """
    return {
        "old": make_legacy("@user%2Fold", b"old-database", mtime=1_000_000),
        "old_journal": make_legacy("@user%2Fold", b"old-journal", "-journal", mtime=1_000_000),
        "new": make_legacy("@user%2Fnew", b"new-database", mtime=2_000_000),
        "new_wal": make_legacy("@user%2Fnew", b"new-wal-frames", "-wal", mtime=2_000_000),
    }


@pytest.fixture
def failing_initializer() -> FailingInitializer:
    return FailingInitializer()


@pytest.fixture
def fixed_timestamps():
    """Factory for :class:`FixedTimestamps` providers."""

    def _make(values: Dict[str, int], default: Optional[int] = None) -> FixedTimestamps:
        return FixedTimestamps(values, default)

    return _make


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch) -> Config:
    """Configuration unaffected by files or variables of the test machine."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in list(os.environ):
        if name.startswith(Config.ENV_PREFIX):
            monkeypatch.delenv(name)
    return Config()
