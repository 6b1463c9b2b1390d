"""
Logging configuration for the storage migration.

This module provides centralized logging configuration with support for:
- Configurable log levels
- Optional file output with rotation
- An in-memory buffer of recent entries for diagnostics

Only the ``storage_migration`` logger hierarchy is configured; the root
logger belongs to the host application and is never touched.
"""

import logging
import logging.handlers
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

ROOT_LOGGER_NAME = "storage_migration"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_OPTIONS: Dict[str, Any] = {
    "level": "INFO",
    "console_logging": True,
    "log_file": None,
    "max_file_size": 10 * 1024 * 1024,
    "backup_count": 5,
    "buffer_size": 500,
}


class MigrationLogger:
    """Owns the handlers of the ``storage_migration`` logger.

    A single instance exists per process. Every :meth:`configure` call drops
    the current handlers and installs new ones, which also empties the
    buffer of recent entries.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return

        self._initialized = True
        self.config: Dict[str, Any] = dict(DEFAULT_OPTIONS)
        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.buffer_handler: Optional[MemoryBufferHandler] = None
        self._install_handlers()

    def _install_handlers(self):
        self.logger.setLevel(getattr(logging, self.config["level"]))

        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        handlers: List[logging.Handler] = []

        if self.config["console_logging"]:
            handlers.append(logging.StreamHandler())

        if self.config["log_file"]:
            file_handler = self._open_log_file(Path(self.config["log_file"]))
            if file_handler is not None:
                handlers.append(file_handler)

        self.buffer_handler = MemoryBufferHandler(self.config["buffer_size"])
        handlers.append(self.buffer_handler)

        for handler in handlers:
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _open_log_file(self, log_path: Path) -> Optional[logging.Handler]:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            return logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=self.config["max_file_size"],
                backupCount=self.config["backup_count"],
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            self.logger.warning("Cannot write log file %s, file logging is off: %s", log_path, exc)
            return None

    def configure(self, **options: Any) -> None:
        """Apply logging options and reinstall the handlers.

        Args:
            **options: Keys of :data:`DEFAULT_OPTIONS`

        Raises:
            ValueError: For unknown options or log levels
        """
        unknown = set(options) - set(DEFAULT_OPTIONS)
        if unknown:
            raise ValueError(f"Unknown logging options: {sorted(unknown)}")
        if "level" in options:
            level = str(options["level"]).upper()
            if not isinstance(getattr(logging, level, None), int):
                raise ValueError(f"Unknown log level: {options['level']}")
            options["level"] = level
        self.config.update(options)
        self._install_handlers()

    def get_recent_logs(self, limit: int = 100, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return buffered entries, newest first.

        Args:
            limit: Maximum number of entries
            level: Optional minimum level name
        """
        entries = self.buffer_handler.snapshot() if self.buffer_handler else []
        if level:
            threshold = getattr(logging, level.upper(), None)
            if isinstance(threshold, int):
                entries = [e for e in entries if e["levelno"] >= threshold]
        return list(reversed(entries[-limit:]))


class MemoryBufferHandler(logging.Handler):
    """Keeps the last ``capacity`` records as dictionaries."""

    def __init__(self, capacity: int):
        super().__init__()
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord):
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "levelno": record.levelno,
                "logger": record.name,
                "message": record.getMessage(),
                "formatted": self.format(record),
            }
        except Exception:  # noqa: BLE001 - logging must never break the migration
            self.handleError(record)
            return
        with self.lock:
            self._entries.append(entry)

    def snapshot(self) -> List[Dict[str, Any]]:
        with self.lock:
            return list(self._entries)


_logger_manager: Optional[MigrationLogger] = None


def get_logger_manager() -> MigrationLogger:
    """Return the singleton :class:`MigrationLogger`, creating it if needed."""
    global _logger_manager
    if _logger_manager is None:
        _logger_manager = MigrationLogger()
    return _logger_manager


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Return a logger in the ``storage_migration`` hierarchy.

    Obtaining a logger does not install handlers; call :func:`setup_logging`.
    """
    return logging.getLogger(name)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    console: Optional[bool] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> logging.Logger:
    """Configure the package logger and return it.

    Args:
        level: Log level name
        log_file: Optional path of a rotating log file
        console: Whether to log to stderr
        max_bytes: Rotation size of the log file
        backup_count: Number of rotated files kept
    """
    manager = get_logger_manager()
    manager.configure(
        level=level or manager.config["level"],
        log_file=log_file,
        console_logging=manager.config["console_logging"] if console is None else console,
        max_file_size=max_bytes or manager.config["max_file_size"],
        backup_count=backup_count or manager.config["backup_count"],
    )
    return manager.logger
