"""Unified logging accessor for the storage migration.

Modules import ``get_logger`` from here so the concrete logging configuration
lives in one place (:mod:`storage_migration.utils.logging_config`).
"""

from __future__ import annotations

import logging
from typing import Any


def get_logger(name: str = "storage_migration") -> logging.Logger:
    """Proxy to the concrete ``get_logger`` implementation."""
    from .utils import logging_config

    return logging_config.get_logger(name)


def get_logger_manager() -> Any:
    from .utils import logging_config

    return logging_config.get_logger_manager()


def setup_logging(*args: Any, **kwargs: Any) -> logging.Logger:
    from .utils import logging_config

    return logging_config.setup_logging(*args, **kwargs)
