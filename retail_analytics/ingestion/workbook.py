"""
Workbook Reader

Opens an .xlsx payload and exposes each sheet as a grid of raw cell values.
Row and column order are preserved exactly and blank rows are kept, since
header detection and diagnostics refer to raw row indices.
"""

import io
import warnings
import zipfile
from xml.etree.ElementTree import ParseError
from pathlib import Path
from typing import Any, List, Union

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from retail_analytics.exceptions import MalformedDocument

logger = structlog.get_logger(__name__)

Row = List[Any]

# What openpyxl raises for a payload that is not a readable .xlsx, including
# a valid zip whose XML members are corrupt
_UNREADABLE = (
    InvalidFileException,
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    ParseError,
    KeyError,
    ValueError,
    TypeError,
    OSError,
)


class Workbook:
    """
    Read-only view over a parsed spreadsheet.

    Example:
        workbook = open_workbook(payload, source="Store-Sales_2025-08-17.xlsx")
        for name in workbook.sheet_names:
            rows = workbook.rows(name)
    """

    def __init__(self, book, source: str = ""):
        self._book = book
        self.source = source

    @property
    def sheet_names(self) -> List[str]:
        return list(self._book.sheetnames)

    def has_sheet(self, name: str) -> bool:
        return name in self._book.sheetnames

    def rows(self, sheet_name: str) -> List[Row]:
        """
        Return the sheet as a list of rows.

        Blank cells come back as "" and every row is as wide as the sheet's
        used range. Chart sheets have no cells and yield no rows.

        Raises:
            MalformedDocument: If the sheet's cells cannot be read
        """
        sheet = self._book[sheet_name]
        if not hasattr(sheet, "iter_rows"):
            return []

        grid: List[Row] = []
        try:
            for values in sheet.iter_rows(
                min_row=1,
                max_row=sheet.max_row,
                min_col=1,
                max_col=sheet.max_column,
                values_only=True,
            ):
                grid.append(["" if value is None else value for value in values])
        except _UNREADABLE as e:
            logger.warning("Unreadable sheet", source=self.source, sheet=sheet_name, error=str(e))
            raise MalformedDocument(
                f"{self.source or 'payload'}: sheet '{sheet_name}' is not readable: {e}",
                source=self.source,
            ) from e
        return grid


def open_workbook(payload: bytes, source: str = "") -> Workbook:
    """
    Parse a binary spreadsheet payload.

    Raises:
        MalformedDocument: If the bytes are not a readable workbook
    """
    try:
        with warnings.catch_warnings():
            # openpyxl warns about unsupported extensions (data validation, slicers)
            warnings.simplefilter("ignore", UserWarning)
            book = load_workbook(io.BytesIO(payload), data_only=True)
    except _UNREADABLE as e:
        logger.warning("Unreadable workbook", source=source, error=str(e), error_type=type(e).__name__)
        raise MalformedDocument(
            f"{source or 'payload'} is not a readable .xlsx workbook (only .xlsx is supported): {e}",
            source=source,
        ) from e

    logger.debug("Workbook opened", source=source, sheets=book.sheetnames)
    return Workbook(book, source=source)


def open_workbook_file(path: Union[str, Path]) -> Workbook:
    """Read a workbook from disk."""
    path = Path(path)
    return open_workbook(path.read_bytes(), source=path.name)
