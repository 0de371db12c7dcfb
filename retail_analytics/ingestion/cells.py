"""
Cell Coercion Helpers

Spreadsheet exports mix numbers, formatted strings ("$1,234.50"), dates and
blanks in the same column. These helpers turn raw cell values into the
normalized text used for header matching and the numbers used for measures.
"""

import math
import re
from datetime import date, datetime, time
from typing import Any, List, Optional, Sequence

_WHITESPACE = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_NON_DIGIT = re.compile(r"\D")


def cell_text(value: Any) -> str:
    """Render a raw cell as trimmed text with internal whitespace collapsed."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return _WHITESPACE.sub(" ", str(value)).strip()


def normalize_row(row: Sequence[Any]) -> List[str]:
    """Normalize every cell of a row with cell_text."""
    return [cell_text(value) for value in row]


def is_blank_row(cells: Sequence[str]) -> bool:
    return all(cell == "" for cell in cells)


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a cell to a finite float.

    Strings keep only digits, "." and "-" before parsing, so currency
    symbols, thousands separators and unit suffixes are tolerated.
    Returns None for blanks, booleans, dates and anything non-finite.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, (datetime, date, time)):
        return None

    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def number_or_zero(value: Any) -> float:
    number = to_number(value)
    return 0.0 if number is None else number


def digits_only(text: str) -> str:
    """Strip everything but 0-9 (UPCs arrive with dashes, spaces or quotes)."""
    return _NON_DIGIT.sub("", text)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, as unit counts expect."""
    return int(math.floor(value + 0.5))
