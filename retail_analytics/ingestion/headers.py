"""
Header Locator

Vendor exports put their column header anywhere in the first few hundred
rows, under varying names. Column discovery is driven by a rule table:
each logical field lists candidate matchers in priority order, and a
HeaderProfile says which fields a row must carry to count as the header.
One generic scan (locate_header) serves every profile.

Profiles:
- STORE_TOTALS_PROFILE: store-sales workbook (store number/name + units or sales)
- SALES_PERF_PROFILE: sales/inventory performance workbook (UPC + units or
  dollars), falling back to a UPC + item description anchor row
- LEGACY_SALES_PROFILE: exact column names used by older single-sheet exports
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import structlog

from .cells import is_blank_row, normalize_row

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Matcher:
    """Matches a normalized header cell, either exactly or by regex (case-insensitive)"""
    text: str
    exact: bool = False
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.exact:
            object.__setattr__(self, "_regex", re.compile(self.text, re.IGNORECASE))

    def matches(self, cell: str) -> bool:
        if not cell:
            return False
        if self.exact:
            return cell.casefold() == self.text.casefold()
        return self._regex.search(cell) is not None


def exact(*names: str) -> Tuple[Matcher, ...]:
    return tuple(Matcher(name, exact=True) for name in names)


def pattern(*regexes: str) -> Tuple[Matcher, ...]:
    return tuple(Matcher(regex) for regex in regexes)


@dataclass(frozen=True)
class FieldRule:
    """Maps a logical field to its candidate header matchers"""
    name: str
    matchers: Tuple[Matcher, ...]

    def find(self, cells: Sequence[str]) -> Optional[int]:
        """
        Column index of the first cell accepted by the highest-priority matcher.

        Matchers are tried in order; a later matcher is only consulted when no
        cell satisfies the earlier ones.
        """
        for matcher in self.matchers:
            for index, cell in enumerate(cells):
                if matcher.matches(cell):
                    return index
        return None


@dataclass(frozen=True)
class HeaderProfile:
    """
    Recognition rules for one kind of header row.

    A row qualifies when every field in `required` is found and, if
    `any_of` is non-empty, at least one of those fields is found too.
    """
    name: str
    rules: Tuple[FieldRule, ...]
    required: Tuple[str, ...]
    any_of: Tuple[str, ...] = ()
    max_scan: int = 60
    degraded: bool = False
    fallback: Optional["HeaderProfile"] = None

    def match_row(self, cells: Sequence[str]) -> Optional[Dict[str, int]]:
        columns: Dict[str, int] = {}
        for rule in self.rules:
            index = rule.find(cells)
            if index is not None:
                columns[rule.name] = index

        if any(name not in columns for name in self.required):
            return None
        if self.any_of and not any(name in columns for name in self.any_of):
            return None
        return columns


@dataclass(frozen=True)
class HeaderMatch:
    """Where the header sits and which column carries each field"""
    row_index: int
    columns: Dict[str, int]
    profile: str
    degraded: bool = False

    def has(self, name: str) -> bool:
        return name in self.columns

    def cell(self, row: Sequence[Any], name: str) -> Any:
        """Raw value of `name` in a data row ("" when absent or out of range)"""
        index = self.columns.get(name)
        if index is None or index >= len(row):
            return ""
        return row[index]


def locate_header(rows: Sequence[Sequence[Any]], profile: HeaderProfile) -> Optional[HeaderMatch]:
    """
    Find the first row that satisfies `profile`, then its fallback chain.

    Blank rows never qualify. Returns None when nothing in any scan window
    matches; that means "no usable data on this sheet", not an error.
    """
    current: Optional[HeaderProfile] = profile
    while current is not None:
        limit = min(len(rows), current.max_scan)
        for index in range(limit):
            cells = normalize_row(rows[index])
            if is_blank_row(cells):
                continue
            columns = current.match_row(cells)
            if columns is not None:
                logger.debug(
                    "Header located",
                    profile=current.name,
                    row=index,
                    columns=columns,
                    degraded=current.degraded,
                )
                return HeaderMatch(
                    row_index=index,
                    columns=columns,
                    profile=current.name,
                    degraded=current.degraded,
                )
        current = current.fallback
    return None


# =============================================================================
# PROFILES
# =============================================================================

STORE_NUMBER = "store_number"
STORE_NAME = "store_name"
UPC = "upc"
NAME = "name"
UNITS = "units"
REVENUE = "revenue"

STORE_TOTALS_PROFILE = HeaderProfile(
    name="store-totals",
    rules=(
        FieldRule(STORE_NUMBER, pattern(r"store\s*number")),
        FieldRule(STORE_NAME, pattern(r"store\s*name")),
        FieldRule(UNITS, pattern(r"total\s*units|sales\s*units")),
        FieldRule(REVENUE, pattern(r"net\s*sales|sales\s*\$")),
    ),
    required=(STORE_NUMBER, STORE_NAME),
    any_of=(UNITS, REVENUE),
    max_scan=60,
)

_ITEM_DESCRIPTION = pattern(r"ulta\s*item.*description")

# Anchors row position only; units and dollars are expected to be missing
SALES_PERF_ANCHOR_PROFILE = HeaderProfile(
    name="sales-perf-anchor",
    rules=(
        FieldRule(UPC, exact("UPC")),
        FieldRule(NAME, _ITEM_DESCRIPTION),
    ),
    required=(UPC, NAME),
    max_scan=300,
    degraded=True,
)

SALES_PERF_PROFILE = HeaderProfile(
    name="sales-perf",
    rules=(
        FieldRule(UPC, exact("UPC")),
        FieldRule(UNITS, pattern(r"sales\s*ty.*units|total\s*sales.*units|\bunits\b")),
        FieldRule(REVENUE, pattern(r"sales\s*ty.*\$\$?|total\s*sales.*\$\$?|net\s*sales")),
        FieldRule(NAME, _ITEM_DESCRIPTION),
    ),
    required=(UPC,),
    any_of=(UNITS, REVENUE),
    max_scan=220,
    fallback=SALES_PERF_ANCHOR_PROFILE,
)

LEGACY_SALES_PROFILE = HeaderProfile(
    name="legacy-sales",
    rules=(
        FieldRule(UPC, exact("UPC", "Upc", "UPC Code", "Item UPC")),
        FieldRule(UNITS, exact("Units Sold", "Units", "Sales Units")),
        FieldRule(REVENUE, exact("Net Sales $", "Retail $", "Net Sales", "Sales $", "Sales")),
        FieldRule(NAME, exact("Description", "Item Description", "Product Name")),
    ),
    required=(UPC,),
    any_of=(UNITS, REVENUE),
    max_scan=50,
)
