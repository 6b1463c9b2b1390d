#!/usr/bin/env python3
"""
Run the scoped storage migration against a storage directory.

Usage:
    python -m storage_migration /path/to/databases
    python -m storage_migration /path/to/databases --dry-run
"""

import argparse
import json
import sys
from typing import List, Optional

from .config import Config
from .database.recency import TIMESTAMP_SOURCES
from .loggers import setup_logging
from .services.migration_service import MigrationService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storage_migration",
        description="Migrate the most recent scoped legacy database to RKStorage.",
    )
    parser.add_argument("storage_directory", nargs="?", help="Directory holding the databases")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--prefix", help="Legacy database name prefix")
    parser.add_argument("--target", help="Target database file name")
    parser.add_argument("--timestamp-source", choices=TIMESTAMP_SOURCES)
    parser.add_argument("--atomic-copy", action="store_true", default=None,
                        help="Stage the copy and move it into place")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print what would be migrated without changing anything")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config(args.config)
    except (OSError, ValueError) as exc:
        parser.error(f"invalid configuration: {exc}")

    overrides = {
        "migration.storage_directory": args.storage_directory,
        "migration.legacy_prefix": args.prefix,
        "migration.target_name": args.target,
        "migration.timestamp_source": args.timestamp_source,
        "migration.atomic_copy": args.atomic_copy,
        "logging.level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)

    if not config.migration.storage_directory:
        parser.error("a storage directory is required")
    try:
        config.validate()
    except ValueError as exc:
        parser.error(str(exc))

    try:
        setup_logging(
            level=config.logging.level,
            log_file=config.logging.file,
            console=config.logging.console,
            max_bytes=config.logging.max_bytes,
            backup_count=config.logging.backup_count,
        )
    except ValueError as exc:
        parser.error(str(exc))

    service = MigrationService(config)
    if args.dry_run:
        result = service.get_migration_info()
    else:
        result = service.run_startup_migration()
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
