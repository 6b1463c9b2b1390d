"""File operation utilities for moving legacy storage files.

This module provides the byte-level copy and delete primitives used by the
migration. Each operation reports a :class:`StepResult` instead of raising, so
callers can apply their own abort/continue policy per step.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..loggers import get_logger


LOGGER = get_logger("storage_migration.utils.file_operations")

# Chunk size for streamed copies; databases are never loaded whole.
COPY_CHUNK_SIZE = 1024 * 1024

STAGING_SUFFIX = ".migrating"


class FileOperationError(Exception):
    """Raised by strict helpers when a file operation cannot complete."""

    def __init__(self, message: str, kind: "FailureKind") -> None:
        super().__init__(message)
        self.kind = kind


class FailureKind(Enum):
    """Enumerated failure taxonomy for migration steps."""

    DIRECTORY_UNREADABLE = "directory_unreadable"
    SOURCE_UNREADABLE = "source_unreadable"
    DESTINATION_UNWRITABLE = "destination_unwritable"
    TRANSFER_FAILED = "transfer_failed"
    INITIALIZATION_FAILED = "initialization_failed"
    DELETE_FAILED = "delete_failed"


@dataclass(slots=True)
class StepResult:
    """Outcome of a single migration step."""

    success: bool
    path: Optional[Path] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, path: Optional[Path] = None) -> "StepResult":
        return cls(success=True, path=path)

    @classmethod
    def failed(
        cls,
        failure: FailureKind,
        error: str,
        path: Optional[Path] = None,
    ) -> "StepResult":
        return cls(success=False, path=path, failure=failure, error=error)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "path": str(self.path) if self.path is not None else None,
            "failure": self.failure.value if self.failure else None,
            "error": self.error,
        }


def transfer_file(source: Path, destination: Path) -> int:
    """Stream ``source`` into ``destination``, replacing its content.

    Both handles are released on every exit path. The destination is closed
    even when closing the source raises.

    Args:
        source: File to read
        destination: File to create or truncate

    Returns:
        Number of bytes written

    Raises:
        FileOperationError: If either file cannot be opened, the transfer
            fails, or the written size does not match the source size
    """
    try:
        src_handle = open(source, "rb")
    except OSError as exc:
        raise FileOperationError(
            f"Cannot open source {source}: {exc}", FailureKind.SOURCE_UNREADABLE
        ) from exc

    dst_handle = None
    try:
        try:
            dst_handle = open(destination, "wb")
        except OSError as exc:
            raise FileOperationError(
                f"Cannot open destination {destination}: {exc}",
                FailureKind.DESTINATION_UNWRITABLE,
            ) from exc

        expected = os.fstat(src_handle.fileno()).st_size
        try:
            shutil.copyfileobj(src_handle, dst_handle, COPY_CHUNK_SIZE)
            dst_handle.flush()
            written = dst_handle.tell()
        except OSError as exc:
            raise FileOperationError(
                f"Transfer from {source} to {destination} failed: {exc}",
                FailureKind.TRANSFER_FAILED,
            ) from exc

        if written != expected:
            raise FileOperationError(
                f"Copy verification failed: size mismatch "
                f"(src={expected}, dst={written})",
                FailureKind.TRANSFER_FAILED,
            )
        return written
    finally:
        try:
            src_handle.close()
        finally:
            if dst_handle is not None:
                dst_handle.close()


def copy_file(source: Path, destination: Path) -> StepResult:
    """Copy the full content of ``source`` to ``destination``.

    Args:
        source: Source path
        destination: Destination path, overwritten if it exists

    Returns:
        Successful result carrying ``destination``, or a failed result
        classifying the error. Never retries.
    """
    source = Path(source)
    destination = Path(destination)
    try:
        written = transfer_file(source, destination)
    except FileOperationError as exc:
        LOGGER.warning("Copy of %s failed: %s", source.name, exc)
        return StepResult.failed(exc.kind, str(exc), destination)
    except OSError as exc:
        # Raised while closing a handle after an otherwise complete transfer.
        LOGGER.warning("Copy of %s failed while closing files: %s", source.name, exc)
        return StepResult.failed(FailureKind.TRANSFER_FAILED, str(exc), destination)

    LOGGER.debug("Copied %s to %s (%d bytes)", source, destination, written)
    return StepResult.ok(destination)


def staging_path(destination: Path) -> Path:
    """Return the temporary path used while ``destination`` is being written."""
    destination = Path(destination)
    return destination.with_name(destination.name + STAGING_SUFFIX)


def replace_file(source: Path, destination: Path) -> StepResult:
    """Copy ``source`` next to ``destination`` and move it into place.

    The copy is written to ``<destination>.migrating`` and renamed over the
    destination with :func:`os.replace`, so the destination is never left
    half-written. A staging file left by an interrupted run is removed first.
    """
    destination = Path(destination)
    staging = staging_path(destination)
    if staging.exists():
        LOGGER.warning("Removing staging file %s left by an interrupted run", staging.name)
        stale = delete_file(staging)
        if not stale.success:
            return StepResult.failed(FailureKind.DESTINATION_UNWRITABLE, stale.error, destination)

    result = copy_file(source, staging)
    if not result.success:
        if staging.exists() and not delete_file(staging).success:
            LOGGER.warning("Could not remove staging file %s", staging)
        return StepResult.failed(result.failure, result.error, destination)

    try:
        os.replace(staging, destination)
    except OSError as exc:
        LOGGER.warning("Could not move %s into place: %s", staging.name, exc)
        delete_file(staging)
        return StepResult.failed(
            FailureKind.DESTINATION_UNWRITABLE, str(exc), destination
        )
    return StepResult.ok(destination)


def delete_file(path: Path) -> StepResult:
    """Delete a single file, best effort.

    Args:
        path: File to delete

    Returns:
        Successful result if the file was removed, failed result otherwise
    """
    path = Path(path)
    try:
        path.unlink()
    except OSError as exc:
        return StepResult.failed(FailureKind.DELETE_FAILED, str(exc), path)
    return StepResult.ok(path)
