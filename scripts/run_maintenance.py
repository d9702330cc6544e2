#!/usr/bin/env python3
"""
Repair stored expenses: backfill display names, normalize legacy category
labels and merge duplicate automatic expenses.

Usage:
    python3 scripts/run_maintenance.py [--dry-run] [--database-url URL]

Run with --dry-run first; it prints the same report without writing.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Clean up stored expenses.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: LEDGER_DATABASE_URL or the config set's database_url).",
    )
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding config sets.")
    parser.add_argument("--config-set", default="default", help="Config set name (default: default).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from ledger_config import get_active_config
    from ledger_kernel.db.engine import get_session_factory, init_engine_from_url
    from ledger_kernel.domain.clock import SystemClock
    from ledger_kernel.exceptions import LedgerError
    from ledger_kernel.logging_config import configure_logging
    from ledger_services.adapters import PacedRecordStore, SqlRecordStore
    from ledger_services.maintenance import MaintenanceService

    configure_logging(level=getattr(logging, args.log_level))

    try:
        config = get_active_config(args.config_dir, args.config_set)
    except (FileNotFoundError, KeyError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    database_url = args.database_url or config.database_url
    if not database_url:
        print("ERROR: no database URL; pass --database-url or set LEDGER_DATABASE_URL.", file=sys.stderr)
        return 1

    init_engine_from_url(database_url)
    clock = SystemClock()
    store = PacedRecordStore.from_config(SqlRecordStore(get_session_factory(), clock), config.pacing, clock)

    service = MaintenanceService(store, dry_run=args.dry_run)
    try:
        report = asyncio.run(service.run_all())
    except LedgerError as e:
        print(f"ERROR: {e.code}: {e}", file=sys.stderr)
        return 1

    print(json.dumps({**asdict(report), "total_changes": report.total_changes}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
