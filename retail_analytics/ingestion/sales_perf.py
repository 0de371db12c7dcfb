"""
SKU-Allocator Parser

Reads chain-wide SKU totals from the sales/inventory performance workbook.
These totals are not broken down by store; the allocation engine spreads
them over the store totals.

Sheets are tried in preference order and the first sheet that yields any
row wins. When no sheet yields rows, the first sheet is re-read with the
legacy exact-name header rules used by older exports.
"""

from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from retail_analytics.config import get_settings
from .cells import cell_text, digits_only, to_number
from .diagnostics import DiagnosticKind, ParseResult
from .headers import (
    LEGACY_SALES_PROFILE,
    NAME,
    REVENUE,
    SALES_PERF_PROFILE,
    UNITS,
    UPC,
    HeaderMatch,
    locate_header,
)
from .records import SkuTotal
from .workbook import Workbook, open_workbook, open_workbook_file

logger = structlog.get_logger(__name__)

MIN_UPC_LENGTH = 6
SUBTOTAL_MARKER = "overall result"


class SkuRowSchema(BaseModel):
    """Validated shape of one allocator data row"""
    upc: str = Field(min_length=MIN_UPC_LENGTH, pattern=r"^\d+$")
    units: Optional[float] = Field(default=None, allow_inf_nan=False)
    revenue: Optional[float] = Field(default=None, allow_inf_nan=False)
    name: Optional[str] = None


def order_sheets(sheet_names: Sequence[str], preferred: Optional[Sequence[str]] = None) -> List[str]:
    """Preferred sheets that exist, in preference order, then the rest in workbook order."""
    if preferred is None:
        preferred = get_settings().ingestion.preferred_sheets
    ordered = [name for name in preferred if name in sheet_names]
    ordered.extend(name for name in sheet_names if name not in ordered)
    return ordered


def _extract_rows(
    rows: Sequence[Sequence[Any]],
    header: HeaderMatch,
    week_end_date: date,
    result: ParseResult,
    sheet_name: str,
) -> List[SkuTotal]:
    extracted: List[SkuTotal] = []

    for index in range(header.row_index + 1, len(rows)):
        row = rows[index]
        upc_text = cell_text(header.cell(row, UPC))
        if not upc_text:
            continue
        if SUBTOTAL_MARKER in upc_text.lower():
            result.note(DiagnosticKind.ROW_SKIPPED, f"subtotal row '{upc_text}'", sheet=sheet_name, row=index)
            continue

        name = cell_text(header.cell(row, NAME)) if header.has(NAME) else ""
        try:
            parsed = SkuRowSchema(
                upc=digits_only(upc_text),
                units=to_number(header.cell(row, UNITS)) if header.has(UNITS) else None,
                revenue=to_number(header.cell(row, REVENUE)) if header.has(REVENUE) else None,
                name=name or None,
            )
        except ValidationError as e:
            result.note(
                DiagnosticKind.ROW_INVALID,
                f"UPC '{upc_text}' rejected: {e.errors()[0]['msg']}",
                sheet=sheet_name,
                row=index,
            )
            continue

        extracted.append(SkuTotal(
            week_end_date=week_end_date,
            upc=parsed.upc,
            name=parsed.name,
            units=parsed.units or 0.0,
            revenue=parsed.revenue or 0.0,
        ))

    return extracted


def parse_sales_perf(workbook: Workbook, week_end_date: date) -> ParseResult:
    """
    Extract SkuTotal rows from a sales/inventory performance workbook.

    Returns:
        ParseResult whose rows are SkuTotal instances; empty when neither
        the preferred sheets nor the legacy first-sheet layout match
    """
    result = ParseResult(source=workbook.source)

    for sheet_name in order_sheets(workbook.sheet_names):
        rows = workbook.rows(sheet_name)
        if not rows:
            continue

        header = locate_header(rows, SALES_PERF_PROFILE)
        if header is None:
            result.note(
                DiagnosticKind.HEADER_NOT_FOUND,
                "no UPC header with units or sales columns",
                sheet=sheet_name,
            )
            continue
        if header.degraded:
            result.note(
                DiagnosticKind.DEGRADED_HEADER,
                f"header at row {header.row_index + 1} has UPC and description only; units and sales default to 0",
                sheet=sheet_name,
            )

        extracted = _extract_rows(rows, header, week_end_date, result, sheet_name)
        if extracted:
            result.rows = extracted
            result.sheet_name = sheet_name
            result.header_row = header.row_index
            break

    if not result.rows and workbook.sheet_names:
        _parse_legacy(workbook, week_end_date, result)

    logger.info(
        "SKU totals parsed",
        source=workbook.source,
        sheet=result.sheet_name,
        skus=len(result.rows),
        dropped=result.dropped_rows,
    )
    return result


def _parse_legacy(workbook: Workbook, week_end_date: date, result: ParseResult) -> None:
    """Exact-name header detection on the first sheet only."""
    sheet_name = workbook.sheet_names[0]
    rows = workbook.rows(sheet_name)
    header = locate_header(rows, LEGACY_SALES_PROFILE)
    if header is None:
        result.note(
            DiagnosticKind.HEADER_NOT_FOUND,
            "legacy header (UPC plus Units Sold / Net Sales $) not found either",
            sheet=sheet_name,
        )
        return

    extracted = _extract_rows(rows, header, week_end_date, result, sheet_name)
    if extracted:
        result.note(
            DiagnosticKind.LEGACY_FALLBACK,
            f"read {len(extracted)} SKU row(s) with the legacy column names",
            sheet=sheet_name,
        )
        result.rows = extracted
        result.sheet_name = sheet_name
        result.header_row = header.row_index


def parse_sales_perf_bytes(payload: bytes, week_end_date: date, source: str = "") -> ParseResult:
    """Open a payload and parse it (raises MalformedDocument for non-spreadsheets)."""
    return parse_sales_perf(open_workbook(payload, source=source), week_end_date)


def parse_sales_perf_file(path: Union[str, Path], week_end_date: date) -> ParseResult:
    return parse_sales_perf(open_workbook_file(path), week_end_date)
