#!/usr/bin/env python
"""
Allocation coverage report.

For each recent week: stores with facts, stores that fell back to the
pseudo-SKU, and the share of stores allocated to real SKUs.

Usage:
    python scripts/report_data_quality.py
    python scripts/report_data_quality.py --csv --weeks 52
"""

import argparse
import asyncio

import polars as pl

from retail_analytics.config.logging import configure_logging
from retail_analytics.database.connection import close_database, get_db, init_database
from retail_analytics.database.queries import data_health


def build_report(rows) -> pl.DataFrame:
    """Data health rows as a DataFrame, weeks without facts dropped."""
    schema = {
        "iso_week": pl.Utf8,
        "total_stores": pl.Int64,
        "pseudo_stores": pl.Int64,
        "pct_full_allocated": pl.Float64,
    }
    return pl.DataFrame(rows, schema=schema).filter(pl.col("total_stores") > 0)


async def run(weeks: int, as_csv: bool) -> None:
    await init_database()
    try:
        async with get_db() as db:
            report = build_report(await data_health(db, weeks))
    finally:
        await close_database()

    if report.is_empty():
        print("No SalesFact data found.")
        return

    if as_csv:
        print(report.write_csv(), end="")
    else:
        with pl.Config(tbl_rows=-1, tbl_hide_dataframe_shape=True):
            print(report)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Report pseudo-SKU fallback coverage per week")
    parser.add_argument("--csv", action="store_true", help="Print CSV instead of a table")
    parser.add_argument("--weeks", type=int, default=104, help="Most recent weeks to include (default: 104)")
    args = parser.parse_args()

    configure_logging(log_level="WARNING", log_format="console")
    asyncio.run(run(max(1, args.weeks), args.csv))
