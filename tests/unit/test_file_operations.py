"""Unit tests for the copy and delete primitives."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from storage_migration.utils import file_operations
from storage_migration.utils.file_operations import (
    COPY_CHUNK_SIZE,
    STAGING_SUFFIX,
    FailureKind,
    FileOperationError,
    StepResult,
    copy_file,
    delete_file,
    replace_file,
    staging_path,
    transfer_file,
)


class TestCopyFile:
    """Tests for copy_file function."""

    @pytest.mark.parametrize(
        "size",
        [0, 1, 4096, COPY_CHUNK_SIZE - 1, COPY_CHUNK_SIZE + 1, 5 * COPY_CHUNK_SIZE + 123],
    )
    def test_copy_is_byte_identical(self, tmp_path: Path, size: int):
        """Copies of any size reproduce the source exactly."""
        payload = os.urandom(size)
        src = tmp_path / "source.db"
        src.write_bytes(payload)
        dst = tmp_path / "dest.db"

        result = copy_file(src, dst)

        assert result.success is True
        assert result.path == dst
        assert dst.read_bytes() == payload

    def test_copy_overwrites_existing_destination(self, tmp_path: Path):
        """Existing destination content is replaced, not appended to."""
        src = tmp_path / "source.db"
        src.write_bytes(b"short")
        dst = tmp_path / "dest.db"
        dst.write_bytes(b"a much longer existing content")

        result = copy_file(src, dst)

        assert result.success
        assert dst.read_bytes() == b"short"

    def test_missing_source(self, tmp_path: Path):
        """A missing source is reported as unreadable and creates nothing."""
        dst = tmp_path / "dest.db"

        result = copy_file(tmp_path / "missing.db", dst)

        assert result.success is False
        assert result.failure is FailureKind.SOURCE_UNREADABLE
        assert not dst.exists()

    def test_directory_source(self, tmp_path: Path):
        """A directory cannot be read as a file."""
        src = tmp_path / "a-directory"
        src.mkdir()

        result = copy_file(src, tmp_path / "dest.db")

        assert result.failure is FailureKind.SOURCE_UNREADABLE

    def test_unwritable_destination(self, tmp_path: Path):
        """A destination inside a missing directory is reported as unwritable."""
        src = tmp_path / "source.db"
        src.write_bytes(b"data")

        result = copy_file(src, tmp_path / "missing" / "dest.db")

        assert result.failure is FailureKind.DESTINATION_UNWRITABLE
        assert result.error

    def test_transfer_error_is_reported(self, tmp_path: Path):
        """An I/O error in the middle of the transfer fails the copy."""
        src = tmp_path / "source.db"
        src.write_bytes(b"data")

        with patch.object(
            file_operations.shutil, "copyfileobj", side_effect=OSError("disk full")
        ):
            result = copy_file(src, tmp_path / "dest.db")

        assert result.failure is FailureKind.TRANSFER_FAILED
        assert "disk full" in result.error

    def test_truncated_transfer_is_reported(self, tmp_path: Path):
        """A transfer writing fewer bytes than the source holds fails verification."""
        src = tmp_path / "source.db"
        src.write_bytes(b"0123456789")

        def short_copy(fsrc, fdst, length):
            fdst.write(fsrc.read(4))

        with patch.object(file_operations.shutil, "copyfileobj", side_effect=short_copy):
            result = copy_file(src, tmp_path / "dest.db")

        assert result.failure is FailureKind.TRANSFER_FAILED
        assert "size mismatch" in result.error


class TestTransferFile:
    """Tests for handle management in transfer_file."""

    def test_returns_written_size(self, tmp_path: Path):
        src = tmp_path / "source.db"
        src.write_bytes(b"x" * 100)

        assert transfer_file(src, tmp_path / "dest.db") == 100

    def test_handles_closed_when_transfer_fails(self, tmp_path: Path):
        """Both handles are released when the transfer raises."""
        src = tmp_path / "source.db"
        src.write_bytes(b"data")
        opened = []
        real_open = open

        def tracking_open(*args, **kwargs):
            handle = real_open(*args, **kwargs)
            opened.append(handle)
            return handle

        with patch("builtins.open", side_effect=tracking_open), patch.object(
            file_operations.shutil, "copyfileobj", side_effect=OSError("boom")
        ):
            with pytest.raises(FileOperationError) as exc_info:
                transfer_file(src, tmp_path / "dest.db")

        assert exc_info.value.kind is FailureKind.TRANSFER_FAILED
        assert len(opened) == 2
        assert all(handle.closed for handle in opened)

    def test_destination_closed_when_source_close_fails(self, tmp_path: Path):
        """A failure closing the source does not leak the destination handle."""
        src = tmp_path / "source.db"
        src.write_bytes(b"data")
        opened = []
        real_open = open

        class FailingClose:
            def __init__(self, handle):
                self._handle = handle

            def __getattr__(self, name):
                return getattr(self._handle, name)

            def close(self):
                self._handle.close()
                raise OSError("close failed")

        def tracking_open(path, mode="r", *args, **kwargs):
            handle = real_open(path, mode, *args, **kwargs)
            opened.append(handle)
            return FailingClose(handle) if mode == "rb" else handle

        with patch("builtins.open", side_effect=tracking_open):
            with pytest.raises(OSError, match="close failed"):
                transfer_file(src, tmp_path / "dest.db")

        assert all(handle.closed for handle in opened)

    def test_close_failure_reported_by_copy_file(self, tmp_path: Path):
        """copy_file turns a close failure into a failed result."""
        src = tmp_path / "source.db"
        src.write_bytes(b"data")

        with patch.object(file_operations, "transfer_file", side_effect=OSError("close failed")):
            result = copy_file(src, tmp_path / "dest.db")

        assert result.failure is FailureKind.TRANSFER_FAILED


class TestReplaceFile:
    """Tests for the staged copy used by atomic migrations."""

    def test_replaces_destination(self, tmp_path: Path):
        src = tmp_path / "source.db"
        src.write_bytes(b"new content")
        dst = tmp_path / "RKStorage"
        dst.write_bytes(b"")

        result = replace_file(src, dst)

        assert result.success
        assert dst.read_bytes() == b"new content"
        assert not (tmp_path / "RKStorage.migrating").exists()

    def test_failed_copy_leaves_destination_untouched(self, tmp_path: Path):
        dst = tmp_path / "RKStorage"
        dst.write_bytes(b"original")

        result = replace_file(tmp_path / "missing.db", dst)

        assert result.success is False
        assert result.path == dst
        assert dst.read_bytes() == b"original"
        assert not (tmp_path / "RKStorage.migrating").exists()

    def test_failed_rename_removes_staging_file(self, tmp_path: Path):
        src = tmp_path / "source.db"
        src.write_bytes(b"data")
        dst = tmp_path / "RKStorage"

        with patch.object(file_operations.os, "replace", side_effect=OSError("locked")):
            result = replace_file(src, dst)

        assert result.failure is FailureKind.DESTINATION_UNWRITABLE
        assert not (tmp_path / "RKStorage.migrating").exists()

    def test_stale_staging_file_is_replaced(self, tmp_path: Path):
        src = tmp_path / "source.db"
        src.write_bytes(b"data")
        dst = tmp_path / "RKStorage"
        staging = staging_path(dst)
        staging.write_bytes(b"leftover from an interrupted copy")

        result = replace_file(src, dst)

        assert result.success
        assert dst.read_bytes() == b"data"
        assert not staging.exists()

    def test_undeletable_stale_staging_file(self, tmp_path: Path):
        src = tmp_path / "source.db"
        src.write_bytes(b"data")
        dst = tmp_path / "RKStorage"
        staging_path(dst).write_bytes(b"leftover")
        stuck = StepResult.failed(FailureKind.DELETE_FAILED, "permission denied", staging_path(dst))

        with patch.object(file_operations, "delete_file", return_value=stuck):
            result = replace_file(src, dst)

        assert result.failure is FailureKind.DESTINATION_UNWRITABLE
        assert not dst.exists()

    def test_staging_path(self, tmp_path: Path):
        assert staging_path(tmp_path / "RKStorage") == tmp_path / f"RKStorage{STAGING_SUFFIX}"


class TestDeleteFile:
    """Tests for delete_file function."""

    def test_deletes_file(self, tmp_path: Path):
        path = tmp_path / "legacy.db"
        path.write_bytes(b"x")

        result = delete_file(path)

        assert result == StepResult.ok(path)
        assert not path.exists()

    def test_missing_file(self, tmp_path: Path):
        result = delete_file(tmp_path / "missing.db")

        assert result.success is False
        assert result.failure is FailureKind.DELETE_FAILED


class TestStepResult:
    """Tests for StepResult serialisation."""

    def test_to_dict(self, tmp_path: Path):
        result = StepResult.failed(FailureKind.DELETE_FAILED, "nope", tmp_path / "a")

        assert result.to_dict() == {
            "success": False,
            "path": str(tmp_path / "a"),
            "failure": "delete_failed",
            "error": "nope",
        }
