"""Migration of write-ahead-log sidecars next to a copied database."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

from ..loggers import get_logger
from ..utils.file_operations import FailureKind, StepResult, copy_file
from .scanner import SHM_SUFFIX, WAL_SUFFIX


LOGGER = get_logger("storage_migration.database.sidecars")

MIGRATED_SIDECAR_SUFFIXES = (WAL_SUFFIX, SHM_SUFFIX)

Copier = Callable[[Path, Path], StepResult]


def migrate_sidecar(
    source_base: Path,
    destination_base: Path,
    suffix: str,
    copier: Copier = copy_file,
) -> StepResult | None:
    """Copy ``<source_base><suffix>`` to ``<destination_base><suffix>``.

    Returns:
        ``None`` if the source sidecar is not a regular file, otherwise the
        copy result. Never raises.
    """
    sidecar = Path(f"{source_base}{suffix}")
    if not sidecar.is_file():
        return None

    destination = Path(f"{destination_base}{suffix}")
    try:
        result = copier(sidecar, destination)
    except Exception as exc:  # noqa: BLE001 - a sidecar never affects the caller
        result = StepResult.failed(FailureKind.TRANSFER_FAILED, str(exc), destination)

    if result.success:
        LOGGER.info("Migrated %s to %s", sidecar.name, destination.name)
    else:
        LOGGER.warning("Failed to migrate %s: %s", sidecar.name, result.error)
    return result


def migrate_sidecars(
    source_base: Path,
    destination_base: Path,
    copier: Copier = copy_file,
) -> Dict[str, StepResult]:
    """Copy the ``-wal`` and ``-shm`` sidecars of a migrated database.

    Each suffix is handled independently. Missing sidecars are skipped and do
    not appear in the result.
    """
    results: Dict[str, StepResult] = {}
    for suffix in MIGRATED_SIDECAR_SUFFIXES:
        result = migrate_sidecar(source_base, destination_base, suffix, copier)
        if result is not None:
            results[suffix] = result
    return results
