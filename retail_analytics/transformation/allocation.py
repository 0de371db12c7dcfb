"""
Allocation Engine

The store-sales workbook has per-store totals and the performance workbook
has per-SKU totals across all stores, but nothing reports a store's sales
by SKU. Store totals are apportioned over SKUs by each SKU's chain-wide
share: every store gets the same SKU mix.

Units are rounded half-up to whole units per (store, SKU); revenue is kept
unrounded. Without SKU totals every store gets a single pseudo-SKU row.
"""

from typing import Any, Dict, List, Sequence

import polars as pl
import structlog

from retail_analytics.database.models import PSEUDO_SKU_NAME, PSEUDO_UPC
from retail_analytics.ingestion.cells import round_half_up
from retail_analytics.ingestion.records import NormalizedRow, SkuTotal, StoreTotal

logger = structlog.get_logger(__name__)


def _stores_frame(store_totals: Sequence[StoreTotal]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "week_end_date": [s.week_end_date for s in store_totals],
            "store_code": [s.store_code for s in store_totals],
            "store_name": [s.store_name for s in store_totals],
            "store_units": [float(s.units or 0) for s in store_totals],
            "store_revenue": [float(s.revenue or 0) for s in store_totals],
        },
        schema={
            "week_end_date": pl.Date,
            "store_code": pl.Utf8,
            "store_name": pl.Utf8,
            "store_units": pl.Float64,
            "store_revenue": pl.Float64,
        },
    ).with_row_index("store_pos")


def _skus_frame(sku_totals: Sequence[SkuTotal]) -> pl.DataFrame:
    df = pl.DataFrame(
        {
            "upc": [k.upc for k in sku_totals],
            "sku_name": [k.name for k in sku_totals],
            "sku_units": [float(k.units or 0) for k in sku_totals],
            "sku_revenue": [float(k.revenue or 0) for k in sku_totals],
        },
        schema={
            "upc": pl.Utf8,
            "sku_name": pl.Utf8,
            "sku_units": pl.Float64,
            "sku_revenue": pl.Float64,
        },
    ).with_row_index("sku_pos")

    # A non-positive total has no meaningful proportions; split evenly instead
    equal_share = pl.lit(1.0 / len(df))
    total_units = df["sku_units"].sum()
    total_revenue = df["sku_revenue"].sum()

    return df.with_columns(
        (pl.col("sku_units") / total_units if total_units > 0 else equal_share).alias("unit_share"),
        (pl.col("sku_revenue") / total_revenue if total_revenue > 0 else equal_share).alias("revenue_share"),
    )


def _pseudo_rows(store_totals: Sequence[StoreTotal]) -> List[NormalizedRow]:
    return [
        NormalizedRow(
            week_end_date=s.week_end_date,
            store_code=s.store_code,
            store_name=s.store_name,
            upc=PSEUDO_UPC,
            sku_name=PSEUDO_SKU_NAME,
            units=round_half_up(s.units or 0),
            revenue=s.revenue or 0.0,
        )
        for s in store_totals
    ]


def allocate(
    store_totals: Sequence[StoreTotal],
    sku_totals: Sequence[SkuTotal],
) -> List[NormalizedRow]:
    """
    Apportion store totals over SKUs.

    Returns:
        [] without store totals; one PSEUDO_UPC row per store without SKU
        totals; otherwise len(store_totals) * len(sku_totals) rows ordered
        by store, then SKU, as given
    """
    if not store_totals:
        return []

    if not sku_totals:
        rows = _pseudo_rows(store_totals)
        logger.info("Allocated to pseudo-SKU", stores=len(store_totals), rows=len(rows))
        return rows

    facts = (
        _stores_frame(store_totals)
        .join(_skus_frame(sku_totals), how="cross")
        .sort(["store_pos", "sku_pos"])
        .with_columns(
            (pl.col("store_units") * pl.col("unit_share") + 0.5).floor().cast(pl.Int64).alias("units"),
            (pl.col("store_revenue") * pl.col("revenue_share")).alias("revenue"),
        )
        .select(["week_end_date", "store_code", "store_name", "upc", "sku_name", "units", "revenue"])
    )

    rows = [NormalizedRow(**record) for record in facts.iter_rows(named=True)]
    logger.info(
        "Allocated store totals to SKUs",
        stores=len(store_totals),
        skus=len(sku_totals),
        rows=len(rows),
    )
    return rows


def allocation_summary(rows: Sequence[NormalizedRow]) -> Dict[str, Any]:
    """Per-call totals used in ingestion logs and reports"""
    if not rows:
        return {"rows": 0, "stores": 0, "skus": 0, "units": 0, "revenue": 0.0, "pseudo": False}

    df = pl.DataFrame(
        {
            "store_code": [r.store_code for r in rows],
            "upc": [r.upc for r in rows],
            "units": [r.units for r in rows],
            "revenue": [float(r.revenue) for r in rows],
        }
    )
    return {
        "rows": len(df),
        "stores": df["store_code"].n_unique(),
        "skus": df["upc"].n_unique(),
        "units": int(df["units"].sum()),
        "revenue": round(float(df["revenue"].sum()), 2),
        "pseudo": bool((df["upc"] == PSEUDO_UPC).all()),
    }
