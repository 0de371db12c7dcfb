"""
Store-Totals Parser

Reads the per-store weekly totals from the store-sales workbook. Only the
sheet named by `ingestion.store_sheet_name` ("StoreSalesReport") is read;
a workbook without it contributes no rows.
"""

import re
from datetime import date
from pathlib import Path
from typing import Optional, Union

import structlog

from retail_analytics.config import get_settings
from .cells import cell_text, number_or_zero
from .diagnostics import DiagnosticKind, ParseResult
from .headers import (
    REVENUE,
    STORE_NAME,
    STORE_NUMBER,
    STORE_TOTALS_PROFILE,
    UNITS,
    locate_header,
)
from .records import StoreTotal
from .workbook import Workbook, open_workbook, open_workbook_file

logger = structlog.get_logger(__name__)

# "Total: 412 stores" closes the data region
_FOOTER = re.compile(r"^total\s*:", re.IGNORECASE)


def parse_store_sales(
    workbook: Workbook,
    week_end_date: date,
    sheet_name: Optional[str] = None,
) -> ParseResult:
    """
    Extract StoreTotal rows from a store-sales workbook.

    Scanning stops at the footer ("Total: ...") or at the first row whose
    store-code cell is blank. Rows with a code but no store name are
    skipped. Measures are coerced leniently and default to 0.

    Returns:
        ParseResult whose rows are StoreTotal instances
    """
    sheet_name = sheet_name or get_settings().ingestion.store_sheet_name
    result = ParseResult(source=workbook.source, sheet_name=sheet_name)

    if not workbook.has_sheet(sheet_name):
        result.note(
            DiagnosticKind.SHEET_MISSING,
            f"sheet '{sheet_name}' not found (sheets: {', '.join(workbook.sheet_names) or 'none'})",
        )
        return result

    rows = workbook.rows(sheet_name)
    header = locate_header(rows, STORE_TOTALS_PROFILE)
    if header is None:
        result.note(
            DiagnosticKind.HEADER_NOT_FOUND,
            f"no store-totals header within the first {STORE_TOTALS_PROFILE.max_scan} rows",
            sheet=sheet_name,
        )
        return result

    result.header_row = header.row_index

    for index in range(header.row_index + 1, len(rows)):
        row = rows[index]
        code = cell_text(header.cell(row, STORE_NUMBER))
        name = cell_text(header.cell(row, STORE_NAME))

        if _FOOTER.match(name):
            result.note(DiagnosticKind.FOOTER_REACHED, f"footer row '{name}'", sheet=sheet_name, row=index)
            break
        if not code:
            result.note(DiagnosticKind.FOOTER_REACHED, "blank store code", sheet=sheet_name, row=index)
            break
        if not name:
            result.note(
                DiagnosticKind.ROW_SKIPPED,
                f"store '{code}' has no store name",
                sheet=sheet_name,
                row=index,
            )
            continue

        result.rows.append(StoreTotal(
            week_end_date=week_end_date,
            store_code=code,
            store_name=name,
            units=number_or_zero(header.cell(row, UNITS)),
            revenue=number_or_zero(header.cell(row, REVENUE)),
        ))

    logger.info(
        "Store totals parsed",
        source=workbook.source,
        sheet=sheet_name,
        header_row=header.row_index,
        stores=len(result.rows),
        skipped=result.dropped_rows,
    )
    return result


def parse_store_sales_bytes(payload: bytes, week_end_date: date, source: str = "") -> ParseResult:
    """Open a payload and parse it (raises MalformedDocument for non-spreadsheets)."""
    return parse_store_sales(open_workbook(payload, source=source), week_end_date)


def parse_store_sales_file(path: Union[str, Path], week_end_date: date) -> ParseResult:
    return parse_store_sales(open_workbook_file(path), week_end_date)
