#!/usr/bin/env python
"""
Batch ingestion of weekly exports.

Loads every Store-Sales workbook under a directory (week-end date taken from
the file name), allocates it with the sibling Sales_Inv_Perf workbook of the
same date when there is one, and prints per-week fact counts.

Usage:
    python scripts/ingest_weekly.py data/
    python scripts/ingest_weekly.py data/ --pattern "2025/**/Store-Sales_*.xlsx"
"""

import argparse
import asyncio
import sys
from collections import defaultdict

from retail_analytics.config import get_settings
from retail_analytics.config.logging import configure_logging
from retail_analytics.database.connection import close_database, create_tables, get_db, init_database
from retail_analytics.database.queries import store_counts_by_week, store_fact_counts, week_fact_counts
from retail_analytics.ingestion.batch_loader import BatchLoader, LoadStatus

STORES_SHOWN = 15


async def run(directory: str, pattern: str) -> int:
    await init_database()
    try:
        await create_tables()
        async with get_db() as db:
            results = await BatchLoader(db).load_directory(directory, pattern=pattern)
            if not results:
                print(f"No files matched {pattern} under {directory}")
                return 0

            inserted_by_week = defaultdict(int)
            missing_allocation = defaultdict(int)
            for r in results:
                print(f"{r.file_path} -> {r.status.value}: rows={r.rows}, inserted={r.inserted}")
                for warning in r.warnings:
                    print(f"    warning: {warning}")
                if r.error_message:
                    print(f"    error: {r.error_message}")
                if r.iso_week:
                    inserted_by_week[r.iso_week] += r.inserted
                if r.status == LoadStatus.PARTIAL:
                    missing_allocation[r.iso_week] += r.stores

            weeks = sorted(inserted_by_week)
            totals = await week_fact_counts(db, weeks)
            stores = await store_counts_by_week(db, weeks)
            per_store = await store_fact_counts(db, weeks)

        print("Per-week DB counts:")
        for iso in weeks:
            print(
                f"  {iso}: total={totals.get(iso, 0)} stores={stores.get(iso, 0)} "
                f"(this run inserted={inserted_by_week[iso]})"
            )

        print(f"Per-store DB counts (first {STORES_SHOWN} per week):")
        for iso in weeks:
            rows = per_store.get(iso, [])
            print(f"  {iso}: distinct_stores={len(rows)}")
            for label, count in rows[:STORES_SHOWN]:
                print(f"    {label}: {count}")
            if len(rows) > STORES_SHOWN:
                print(f"    ...and {len(rows) - STORES_SHOWN} more stores")

        if missing_allocation:
            items = ", ".join(f"{iso} (stores={n})" for iso, n in sorted(missing_allocation.items()))
            print(f"Weeks missing Sales_Inv_Perf allocation: {items}")

        failed = [r for r in results if r.status == LoadStatus.FAILED]
        return 1 if failed else 0
    finally:
        await close_database()


if __name__ == "__main__":
    ingestion = get_settings().ingestion
    parser = argparse.ArgumentParser(description="Ingest weekly Store-Sales / Sales_Inv_Perf exports")
    parser.add_argument(
        "directory",
        nargs="?",
        default=ingestion.data_dir,
        help=f"Directory holding the exports (default: {ingestion.data_dir})",
    )
    parser.add_argument(
        "--pattern",
        default=ingestion.file_glob,
        help=f"Glob for Store-Sales workbooks (default: {ingestion.file_glob})",
    )
    args = parser.parse_args()

    configure_logging(log_format="console")
    sys.exit(asyncio.run(run(args.directory, args.pattern)))
