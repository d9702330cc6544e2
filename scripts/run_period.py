#!/usr/bin/env python3
"""
Run commission allocation and P&L aggregation for one or more periods.

Reads sales and monthly commission records from the database, writes the
derived expenses and P&L lines back, and prints a JSON run summary.  Safe to
re-run: unchanged inputs produce no writes.

Usage:
    python3 scripts/run_period.py --period "Octombrie 2025" [options]

Examples:
    # One period, allocation then P&L
    python3 scripts/run_period.py --period "Octombrie 2025"

    # Every month that has sales
    python3 scripts/run_period.py --all-periods

    # A range of periods, P&L only
    python3 scripts/run_period.py --from "Ianuarie 2025" --to "Iunie 2025" --only-pnl

    # Local SQLite database, created on first use
    python3 scripts/run_period.py --period "Octombrie 2025" \\
        --database-url sqlite:///ledger.db --create-tables
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Allocate commissions and aggregate P&L for the given periods.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--period",
        action="append",
        default=[],
        help='Period to process, e.g. "Octombrie 2025". Repeatable.',
    )
    parser.add_argument("--from", dest="from_period", default=None, help="First period of a range.")
    parser.add_argument("--to", dest="to_period", default=None, help="Last period of a range (inclusive).")
    parser.add_argument(
        "--all-periods",
        action="store_true",
        help="Process every period that has at least one sale.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: LEDGER_DATABASE_URL or the config set's database_url).",
    )
    parser.add_argument(
        "--ad-spend-file",
        type=Path,
        default=None,
        help="Exported ad spend report (YAML or JSON). Default: config ad_spend.source_file.",
    )
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding config sets.")
    parser.add_argument("--config-set", default="default", help="Config set name (default: default).")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--skip-pnl", action="store_true", help="Run allocation only.")
    mode.add_argument("--only-pnl", action="store_true", help="Run P&L aggregation only.")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running.",
    )
    parser.add_argument(
        "--no-pacing",
        action="store_true",
        help="Call the store directly, without pacing or write retries.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from ledger_config import get_active_config
    from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from ledger_kernel.domain.clock import SystemClock
    from ledger_kernel.domain.periods import PeriodKey
    from ledger_kernel.exceptions import InvalidPeriodKeyError, LedgerError
    from ledger_kernel.logging_config import configure_logging
    from ledger_services.adapters import FileAdSpendSource, PacedRecordStore, SqlRecordStore
    from ledger_services.period_runner import PeriodRunner, parse_periods

    configure_logging(level=getattr(logging, args.log_level))

    try:
        periods = parse_periods(args.period)
        if args.from_period or args.to_period:
            if not (args.from_period and args.to_period):
                print("ERROR: --from and --to must be given together.", file=sys.stderr)
                return 2
            start = PeriodKey.parse(args.from_period)
            end = PeriodKey.parse(args.to_period)
            if end < start:
                print("ERROR: --to is earlier than --from.", file=sys.stderr)
                return 2
            periods.extend(PeriodKey.range(start, end))
    except InvalidPeriodKeyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    if args.all_periods and periods:
        print("ERROR: --all-periods cannot be combined with --period or --from/--to.", file=sys.stderr)
        return 2
    if not periods and not args.all_periods:
        print("ERROR: no period given; use --period, --from/--to or --all-periods.", file=sys.stderr)
        return 2

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
    if args.create_tables:
        create_tables()

    clock = SystemClock()
    store = SqlRecordStore(get_session_factory(), clock)
    if not args.no_pacing:
        store = PacedRecordStore.from_config(store, config.pacing, clock)

    ad_spend_path = args.ad_spend_file or config.ad_spend.source_file
    ad_spend = FileAdSpendSource(ad_spend_path) if ad_spend_path else None

    runner = PeriodRunner(store, config, ad_spend=ad_spend)
    allocate, pnl = not args.only_pnl, not args.skip_pnl
    if args.all_periods:
        try:
            summary = asyncio.run(runner.run_all_periods(allocate=allocate, pnl=pnl))
        except LedgerError as e:
            print(f"ERROR: could not list sale periods: {e}", file=sys.stderr)
            return 1
    else:
        summary = asyncio.run(runner.run_periods(periods, allocate=allocate, pnl=pnl))

    print(json.dumps(summary.as_dict(), indent=2))
    for allocation in summary.allocations:
        for kind in allocation.kinds:
            for message in kind.error_messages:
                print(f"  {allocation.period.label} {kind.kind}: {message}", file=sys.stderr)
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
