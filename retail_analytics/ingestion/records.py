"""
Ingestion Records

Plain row types that flow between the parsers, the allocation engine and
the fact ingestion layer.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass
class StoreTotal:
    """Units and revenue for one store, from the store-sales workbook"""
    week_end_date: date
    store_code: str
    store_name: str
    units: float = 0.0
    revenue: float = 0.0


@dataclass
class SkuTotal:
    """Units and revenue for one SKU summed over every store"""
    week_end_date: date
    upc: str
    name: Optional[str] = None
    units: float = 0.0
    revenue: float = 0.0


@dataclass
class NormalizedRow:
    """One (week, store, SKU) measurement ready for the fact table"""
    week_end_date: date
    store_code: str
    upc: str
    units: int = 0
    revenue: float = 0.0
    store_name: Optional[str] = None
    sku_name: Optional[str] = None
