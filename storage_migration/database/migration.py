"""Migration of a scoped legacy storage database to the default location.

Earlier versions of the embedding framework stored key-value data in one
database per scope (``RKStorage-scoped-experience-<scopeId>``). The current
storage engine reads a single ``RKStorage`` file. On first start the most
recent scoped database is copied into place together with its WAL sidecars,
and every scoped file is removed.

The migration only runs while the target file does not exist; its presence
marks the migration as done. Nothing raised inside the pipeline escapes
:meth:`ScopedStorageMigrator.migrate`: each step reports a
:class:`~storage_migration.utils.file_operations.StepResult` and the migrator
decides whether to abort or continue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..loggers import get_logger
from ..utils.file_operations import (
    FailureKind,
    StepResult,
    copy_file,
    delete_file,
    replace_file,
    staging_path,
)
from .recency import (
    TIMESTAMP_SOURCES,
    TimestampProvider,
    pick_most_recent,
    select_timestamp_provider,
)
from .scanner import SIDECAR_SUFFIXES, FileScanner
from .sidecars import Copier, migrate_sidecars
from .supplier import DATABASE_NAME, SQLiteStorageSupplier, StorageInitializer


LOGGER = get_logger("storage_migration.database.migration")

DEFAULT_LEGACY_PREFIX = "RKStorage-scoped-experience-"
DEFAULT_TARGET_NAME = DATABASE_NAME


class MigrationOutcome(Enum):
    """Result of one migration run, used for logging and reporting."""

    SKIPPED_ALREADY_MIGRATED = "skipped_already_migrated"
    SKIPPED_NO_CANDIDATE = "skipped_no_candidate"
    MIGRATED = "migrated"
    MIGRATED_WITH_ERRORS = "migrated_with_errors"
    FAILED = "failed"


@dataclass(slots=True)
class MigrationReport:
    """Details of a migration run."""

    outcome: MigrationOutcome
    storage_directory: Path
    source: Optional[Path] = None
    target: Optional[Path] = None
    sidecars: Dict[str, StepResult] = field(default_factory=dict)
    deleted: List[Path] = field(default_factory=list)
    delete_failures: List[StepResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "storage_directory": str(self.storage_directory),
            "source": str(self.source) if self.source else None,
            "target": str(self.target) if self.target else None,
            "sidecars": {suffix: result.to_dict() for suffix, result in self.sidecars.items()},
            "deleted": [str(path) for path in self.deleted],
            "delete_failures": [result.to_dict() for result in self.delete_failures],
            "error": self.error,
        }


class ScopedStorageMigrator:
    """Moves the most recent scoped legacy database to the target file."""

    def __init__(
        self,
        storage_directory: str | Path,
        legacy_prefix: str = DEFAULT_LEGACY_PREFIX,
        target_name: str = DEFAULT_TARGET_NAME,
        initializer: Optional[StorageInitializer] = None,
        scanner: Optional[FileScanner] = None,
        timestamp_provider: Optional[TimestampProvider] = None,
        timestamp_source: str = "auto",
        atomic_copy: bool = False,
        copier: Copier = copy_file,
    ) -> None:
        if not legacy_prefix:
            raise ValueError("legacy_prefix must not be empty")
        if not target_name:
            raise ValueError("target_name must not be empty")
        if timestamp_source not in TIMESTAMP_SOURCES:
            raise ValueError(f"Unknown timestamp source: {timestamp_source!r}")

        self.storage_directory = Path(storage_directory)
        self.legacy_prefix = legacy_prefix
        self.target_name = target_name
        self.target_path = self.storage_directory / target_name
        self.initializer = initializer or SQLiteStorageSupplier(self.target_path)
        self.scanner = scanner or FileScanner()
        self.atomic_copy = atomic_copy
        self.copier = copier
        self._timestamp_provider = timestamp_provider
        self._timestamp_source = timestamp_source

    @property
    def timestamp_provider(self) -> TimestampProvider:
        if self._timestamp_provider is None:
            probe = self.storage_directory if self.storage_directory.exists() else None
            self._timestamp_provider = select_timestamp_provider(self._timestamp_source, probe)
        return self._timestamp_provider

    def is_migrated(self) -> bool:
        """Return ``True`` if the target file exists."""
        return self.target_path.exists()

    def list_candidates(self) -> List[Path]:
        """Return the primary legacy databases, excluding the target's own files."""
        owned = self._owned_paths(self.target_path)
        return [
            path
            for path in self.scanner.list_primary_candidates(
                self.storage_directory, self.legacy_prefix
            )
            if path not in owned
        ]

    def migrate(self) -> MigrationOutcome:
        """Run the migration and return only its outcome."""
        return self.run().outcome

    def run(self) -> MigrationReport:
        """Run the migration and return a detailed report. Never raises."""
        report = MigrationReport(
            outcome=MigrationOutcome.FAILED,
            storage_directory=self.storage_directory,
        )
        try:
            self._run(report)
        except Exception as exc:  # noqa: BLE001 - migration must never block startup
            LOGGER.exception("Unexpected error during scoped storage migration")
            report.outcome = MigrationOutcome.FAILED
            report.error = str(exc)
        return report

    def _run(self, report: MigrationReport) -> None:
        if self.is_migrated():
            LOGGER.debug("%s already exists, skipping migration", self.target_name)
            staging = staging_path(self.target_path)
            if staging.exists():
                LOGGER.warning("Staging file %s was left by an interrupted migration", staging.name)
            report.outcome = MigrationOutcome.SKIPPED_ALREADY_MIGRATED
            return

        source = pick_most_recent(self.list_candidates(), self.timestamp_provider)
        if source is None:
            LOGGER.info("No scoped database found")
            report.outcome = MigrationOutcome.SKIPPED_NO_CANDIDATE
            return
        report.source = source

        init_result = self._ensure_target()
        if not init_result.success:
            LOGGER.error(
                "Failed to create %s before migrating %s: %s",
                self.target_name,
                source.name,
                init_result.error,
            )
            report.error = init_result.error
            return
        target = init_result.path
        report.target = target

        copy_result = self._copy_primary(source, target)
        if not copy_result.success:
            LOGGER.error(
                "Failed to migrate scoped database %s (%s): %s",
                source.name,
                copy_result.failure.value if copy_result.failure else "unknown",
                copy_result.error,
            )
            report.error = copy_result.error
            return
        LOGGER.info(
            "Migrated most recently modified database %s to %s", source.name, target.name
        )

        report.sidecars = migrate_sidecars(source, target, self.copier)

        owned = self._owned_paths(self.target_path) | self._owned_paths(target)
        for legacy_file in self.scanner.list_legacy_files(
            self.storage_directory, self.legacy_prefix
        ):
            if legacy_file in owned:
                continue
            result = delete_file(legacy_file)
            if result.success:
                LOGGER.info("Deleted scoped database %s", legacy_file.name)
                report.deleted.append(legacy_file)
            else:
                LOGGER.warning(
                    "Failed to delete scoped database %s: %s", legacy_file.name, result.error
                )
                report.delete_failures.append(result)

        sidecar_failed = any(not result.success for result in report.sidecars.values())
        if sidecar_failed or report.delete_failures:
            report.outcome = MigrationOutcome.MIGRATED_WITH_ERRORS
        else:
            report.outcome = MigrationOutcome.MIGRATED
        LOGGER.info("Completed the scoped storage migration (%s)", report.outcome.value)

    @staticmethod
    def _owned_paths(target: Path) -> Set[Path]:
        """Paths of the target database that cleanup must never delete."""
        owned = {target, staging_path(target)}
        owned.update(Path(f"{target}{suffix}") for suffix in SIDECAR_SUFFIXES)
        return owned

    def _ensure_target(self) -> StepResult:
        try:
            path = self.initializer.ensure_initialized()
        except Exception as exc:  # noqa: BLE001 - engine errors are not ours to type
            return StepResult.failed(FailureKind.INITIALIZATION_FAILED, str(exc), self.target_path)
        return StepResult.ok(Path(path) if path is not None else self.target_path)

    def _copy_primary(self, source: Path, target: Path) -> StepResult:
        if self.atomic_copy:
            return replace_file(source, target)
        return self.copier(source, target)


def migrate(
    storage_directory: str | Path,
    legacy_name_prefix: str = DEFAULT_LEGACY_PREFIX,
    target_file_name: str = DEFAULT_TARGET_NAME,
    initializer: Optional[StorageInitializer] = None,
    **options: Any,
) -> MigrationOutcome:
    """Migrate the most recent scoped legacy database in ``storage_directory``.

    Args:
        storage_directory: Directory holding the legacy and target databases
        legacy_name_prefix: Name prefix of legacy database files
        target_file_name: Name of the storage engine's database file
        initializer: Collaborator creating the target before the copy;
            defaults to :class:`SQLiteStorageSupplier`
        **options: Extra :class:`ScopedStorageMigrator` options
            (``timestamp_source``, ``atomic_copy``, ``scanner`` ...)

    Returns:
        The :class:`MigrationOutcome`; never raises for filesystem problems.
    """
    try:
        migrator = ScopedStorageMigrator(
            storage_directory,
            legacy_prefix=legacy_name_prefix,
            target_name=target_file_name,
            initializer=initializer,
            **options,
        )
    except (TypeError, ValueError) as exc:
        LOGGER.error("Invalid migration options: %s", exc)
        return MigrationOutcome.FAILED
    return migrator.migrate()
