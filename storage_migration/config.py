"""Configuration management for the storage migration.

Settings come from dataclass defaults, an optional JSON file and environment
variables, applied in that order.
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from .database.migration import DEFAULT_LEGACY_PREFIX, DEFAULT_TARGET_NAME
from .database.recency import TIMESTAMP_SOURCES


CONFIG_SEARCH_PATHS = (
    "storage_migration.json",
    os.path.join("~", ".storage_migration", "config.json"),
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {raw!r}")


@dataclass
class MigrationConfig:
    """Migration settings."""

    storage_directory: Optional[str] = None
    legacy_prefix: str = DEFAULT_LEGACY_PREFIX
    target_name: str = DEFAULT_TARGET_NAME
    timestamp_source: str = "auto"
    atomic_copy: bool = False
    enabled: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ``ValueError`` if a setting cannot be used by the migrator."""
        if self.timestamp_source not in TIMESTAMP_SOURCES:
            raise ValueError(
                f"Invalid timestamp_source {self.timestamp_source!r}; "
                f"expected one of {TIMESTAMP_SOURCES}"
            )
        if not self.legacy_prefix:
            raise ValueError("legacy_prefix must not be empty")
        if not self.target_name:
            raise ValueError("target_name must not be empty")


@dataclass
class LoggingConfig:
    """Logging configuration settings."""

    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Main configuration class."""

    ENV_PREFIX = "STORAGE_MIGRATION_"

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration.

        Args:
            config_file: Path to a JSON configuration file; searched in the
                standard locations when omitted
        """
        self.config_file = config_file or self._find_config_file()
        self.migration = MigrationConfig()
        self.logging = LoggingConfig()

        if self.config_file and os.path.exists(self.config_file):
            self.load(self.config_file)

        self._load_from_env()
        self.validate()

    def _find_config_file(self) -> Optional[str]:
        for path in CONFIG_SEARCH_PATHS:
            expanded = os.path.expanduser(path)
            if os.path.exists(expanded):
                return expanded
        return None

    def load(self, config_file: str):
        """Load configuration from a JSON file.

        Raises:
            ValueError: If the file holds unknown keys or invalid values
        """
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if "migration" in data:
            self.migration = self._build(MigrationConfig, data["migration"])
        if "logging" in data:
            self.logging = self._build(LoggingConfig, data["logging"])

    @staticmethod
    def _build(section_cls, values: Dict[str, Any]):
        known = {f.name for f in fields(section_cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(
                f"Unknown {section_cls.__name__} settings: {sorted(unknown)}"
            )
        return section_cls(**values)

    def save(self, config_file: Optional[str] = None):
        config_file = config_file or self.config_file or CONFIG_SEARCH_PATHS[0]
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve configuration values using dotted paths (``migration.enabled``)."""
        current: Any = self
        for part in (p for p in key.split(".") if p):
            if not hasattr(current, part):
                return default
            current = getattr(current, part)
        return current

    def set(self, key: str, value: Any) -> None:
        """Set configuration values using dotted paths.

        Raises:
            KeyError: If the path does not name an existing setting
        """
        parts = [p for p in key.split(".") if p]
        if len(parts) != 2 or not hasattr(self, parts[0]):
            raise KeyError(key)
        section = getattr(self, parts[0])
        if not hasattr(section, parts[1]):
            raise KeyError(key)
        setattr(section, parts[1], value)

    def validate(self) -> None:
        """Check the settings after files, environment and overrides were applied.

        Raises:
            ValueError: If a migration setting is invalid
        """
        self.migration.validate()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        env = os.environ
        prefix = self.ENV_PREFIX

        if f"{prefix}DIR" in env:
            self.migration.storage_directory = env[f"{prefix}DIR"]
        if f"{prefix}PREFIX" in env:
            self.migration.legacy_prefix = env[f"{prefix}PREFIX"]
        if f"{prefix}TARGET" in env:
            self.migration.target_name = env[f"{prefix}TARGET"]
        if f"{prefix}TIMESTAMP_SOURCE" in env:
            source = env[f"{prefix}TIMESTAMP_SOURCE"].strip().lower()
            if source not in TIMESTAMP_SOURCES:
                raise ValueError(f"Invalid {prefix}TIMESTAMP_SOURCE: {source!r}")
            self.migration.timestamp_source = source
        if f"{prefix}ATOMIC_COPY" in env:
            self.migration.atomic_copy = _parse_bool(
                f"{prefix}ATOMIC_COPY", env[f"{prefix}ATOMIC_COPY"]
            )
        if f"{prefix}ENABLED" in env:
            self.migration.enabled = _parse_bool(f"{prefix}ENABLED", env[f"{prefix}ENABLED"])

        if f"{prefix}LOG_LEVEL" in env:
            self.logging.level = env[f"{prefix}LOG_LEVEL"].upper()
        if f"{prefix}LOG_FILE" in env:
            self.logging.file = env[f"{prefix}LOG_FILE"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "migration": asdict(self.migration),
            "logging": asdict(self.logging),
        }
