"""clinicstore CLI — inspect and prepare the store file.

Usage:
    python -m clinicstore status     Show which declared collections the file has
    python -m clinicstore migrate    Create or migrate the store file
    python -m clinicstore stats      Print record counts per collection
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path

from clinicstore.config.settings import StoreSettings, get_settings
from clinicstore.factory import build_store
from clinicstore.storage.migrations import migration_status
from clinicstore.utils.logging import configure_logging


def _parse_args(argv: list[str] | None, defaults: StoreSettings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="clinicstore",
        description="Embedded document store for the clinic backend",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=defaults.data_dir,
        help=f"Directory holding the store file (default: {defaults.data_dir})",
    )
    parser.add_argument(
        "--db-file",
        default=defaults.db_file,
        help=f"Store file name (default: {defaults.db_file})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level,
        help="Logging level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="Show migration status of the store file")
    subparsers.add_parser("migrate", help="Create the store file or add missing collections")
    subparsers.add_parser("stats", help="Print record counts per collection")

    return parser.parse_args(argv)


def _cmd_status(settings: StoreSettings) -> int:
    status = migration_status(settings.db_path)
    print(json.dumps(status.summary(), indent=2))
    return 0 if status.is_complete else 1


def _cmd_migrate(settings: StoreSettings) -> int:
    before = migration_status(settings.db_path)
    with build_store(settings) as store:
        store.wait_for_flush()
        names = store.collection_names()
    after = migration_status(settings.db_path)

    added = [n for n in after.existing_collections if n not in before.existing_collections]
    print(f"Store file: {settings.db_path}")
    if not before.file_exists:
        print(f"Created with {len(names)} collections (seed data applied)")
    elif added:
        print(f"Added collections: {', '.join(added)}")
    else:
        print("Store is up to date. No migration needed.")
    return 0 if after.is_complete else 1


def _cmd_stats(settings: StoreSettings) -> int:
    with build_store(settings) as store:
        names = store.collection_names()
        counts = {name: store.count(name) for name in names}

    print(f"\n{'Collection':<22} {'Records':>8}")
    print("-" * 31)
    for name, n in counts.items():
        print(f"{name:<22} {n:>8}")
    print("-" * 31)
    print(f"{'total':<22} {sum(counts.values()):>8}")
    return 0


def main(argv: list[str] | None = None) -> int:
    defaults = get_settings()
    args = _parse_args(argv, defaults)
    configure_logging(json_output=defaults.json_logs, level=args.log_level)

    settings = dataclasses.replace(
        defaults,
        data_dir=args.data_dir,
        db_file=args.db_file,
        log_level=args.log_level,
        persist=True,
    )

    if args.command == "status":
        return _cmd_status(settings)
    elif args.command == "migrate":
        return _cmd_migrate(settings)
    elif args.command == "stats":
        return _cmd_stats(settings)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
