"""High-level migration service used by the host application at startup."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional

from ..config import Config, MigrationConfig
from ..database.migration import MigrationOutcome, MigrationReport, ScopedStorageMigrator
from ..database.recency import pick_most_recent
from ..database.scanner import describe_legacy_files
from ..database.supplier import StorageInitializer
from ..loggers import get_logger


LOGGER = get_logger("storage_migration.services.migration")

MigratorFactory = Callable[[MigrationConfig, Optional[StorageInitializer]], ScopedStorageMigrator]


def _default_factory(
    settings: MigrationConfig,
    initializer: Optional[StorageInitializer],
) -> ScopedStorageMigrator:
    return ScopedStorageMigrator(
        settings.storage_directory,
        legacy_prefix=settings.legacy_prefix,
        target_name=settings.target_name,
        initializer=initializer,
        timestamp_source=settings.timestamp_source,
        atomic_copy=settings.atomic_copy,
    )


class MigrationService:
    """Facade running the scoped storage migration once per process."""

    def __init__(
        self,
        config: Optional[Config] = None,
        initializer: Optional[StorageInitializer] = None,
        migrator_factory: Optional[MigratorFactory] = None,
    ) -> None:
        self.config = config or Config()
        self.initializer = initializer
        self._migrator_factory: MigratorFactory = migrator_factory or _default_factory
        self._lock = Lock()
        self._last_report: Optional[MigrationReport] = None

    @property
    def settings(self) -> MigrationConfig:
        return self.config.migration

    def _require_directory(self) -> Path:
        if not self.settings.storage_directory:
            raise ValueError(
                "storage_directory is required. Set it in the configuration file "
                "or via STORAGE_MIGRATION_DIR."
            )
        return Path(self.settings.storage_directory)

    def _build_migrator(self) -> ScopedStorageMigrator:
        self._require_directory()
        return self._migrator_factory(self.settings, self.initializer)

    def get_migration_info(self) -> Dict[str, Any]:
        """Return a dry-run snapshot of what the migration would do.

        Raises:
            ValueError: If no storage directory is configured
        """
        migrator = self._build_migrator()
        provider = migrator.timestamp_provider
        legacy_files = describe_legacy_files(
            migrator.storage_directory,
            migrator.legacy_prefix,
            provider,
            scanner=migrator.scanner,
        )
        chosen = pick_most_recent(migrator.list_candidates(), provider)
        migrated = migrator.is_migrated()
        return {
            "storage_directory": str(migrator.storage_directory),
            "target": str(migrator.target_path),
            "already_migrated": migrated,
            "needed": not migrated and chosen is not None,
            "timestamp_source": provider.name,
            "legacy_files": [legacy.to_dict() for legacy in legacy_files],
            "candidate": str(chosen) if chosen is not None else None,
        }

    def run_startup_migration(self) -> Dict[str, Any]:
        """Run the migration once and return its report as a dictionary.

        Subsequent calls return the cached report. Never raises.
        """
        with self._lock:
            if self._last_report is not None:
                return self._last_report.to_dict()

            if not self.settings.enabled:
                LOGGER.info("Scoped storage migration disabled by configuration")
                return {"status": "disabled"}

            try:
                migrator = self._build_migrator()
            except (TypeError, ValueError) as exc:
                LOGGER.error("Cannot start scoped storage migration: %s", exc)
                return {
                    "outcome": MigrationOutcome.FAILED.value,
                    "error": str(exc),
                }

            LOGGER.debug("Starting scoped storage migration in %s", migrator.storage_directory)
            self._last_report = migrator.run()
            return self._last_report.to_dict()

    def get_last_result(self) -> Optional[Dict[str, Any]]:
        return self._last_report.to_dict() if self._last_report else None
