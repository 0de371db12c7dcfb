"""
Export file naming conventions.

The retailer portal names exports like:
    Store-Sales_Weekly-2025-08-17.xlsx
    Sales_Inv_Perf__Weekly-2025-08-17_1.xlsx

The file name decides how a workbook is routed and, in batch mode, which
week it reports on.
"""

import re
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class FileKind(str, Enum):
    """How an uploaded workbook was handled"""
    STORE_TOTALS = "store-totals"
    ALLOCATOR = "allocator"
    IGNORED = "ignored"
    ERROR = "error"


_STORE_SALES = re.compile(r"store[\s_-]*sales", re.IGNORECASE)
_SALES_INV_PERF = re.compile(r"sales[\s_-]*inv[\s_-]*perf", re.IGNORECASE)
# Optional _<n> suffix before the extension (re-downloads: -2025-05-31_1.xlsx).
# Only .xlsx: legacy .xls workbooks cannot be read.
_WEEK_END = re.compile(r"-(\d{4}-\d{2}-\d{2})(?:_\d+)?\.xlsx$", re.IGNORECASE)


def classify_filename(name: str) -> FileKind:
    base = Path(name).name
    if _STORE_SALES.search(base):
        return FileKind.STORE_TOTALS
    if _SALES_INV_PERF.search(base):
        return FileKind.ALLOCATOR
    return FileKind.IGNORED


def week_end_from_filename(name: Union[str, Path]) -> Optional[date]:
    """
    Week-end date carried in the file name, or None.

    Example:
        week_end_from_filename("Store-Sales_Weekly-2025-08-17_2.xlsx")
        # date(2025, 8, 17)
    """
    match = _WEEK_END.search(Path(name).name)
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None
