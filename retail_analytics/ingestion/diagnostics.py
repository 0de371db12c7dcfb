"""
Parse Diagnostics

Parsers are lenient on purpose: a sheet without a usable header or a row
that fails validation is skipped rather than aborting the upload. Every
skip is recorded here so the ingestion layer can hand operators the reason
allocation degraded without anyone reading server logs.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class DiagnosticKind(str, Enum):
    """What the parser skipped and why"""
    SHEET_MISSING = "sheet_missing"
    HEADER_NOT_FOUND = "header_not_found"
    DEGRADED_HEADER = "degraded_header"
    LEGACY_FALLBACK = "legacy_fallback"
    FOOTER_REACHED = "footer_reached"
    ROW_SKIPPED = "row_skipped"
    ROW_INVALID = "row_invalid"


# Kinds that describe a whole sheet or workbook rather than a single row
SHEET_LEVEL_KINDS = frozenset({
    DiagnosticKind.SHEET_MISSING,
    DiagnosticKind.HEADER_NOT_FOUND,
    DiagnosticKind.DEGRADED_HEADER,
    DiagnosticKind.LEGACY_FALLBACK,
})


@dataclass
class ParseDiagnostic:
    """Single observation made while parsing a workbook"""
    kind: DiagnosticKind
    message: str
    source: str = ""
    sheet: Optional[str] = None
    row: Optional[int] = None  # 0-based index into the sheet's raw rows

    @property
    def is_sheet_level(self) -> bool:
        return self.kind in SHEET_LEVEL_KINDS

    def __str__(self) -> str:
        location = self.source or "workbook"
        if self.sheet:
            location += f" [{self.sheet}]"
        if self.row is not None:
            location += f" row {self.row + 1}"
        return f"{location}: {self.message}"


@dataclass
class ParseResult:
    """Rows extracted from one workbook plus everything that was dropped"""
    source: str
    rows: List[Any] = field(default_factory=list)
    sheet_name: Optional[str] = None
    header_row: Optional[int] = None
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    def note(
        self,
        kind: DiagnosticKind,
        message: str,
        sheet: Optional[str] = None,
        row: Optional[int] = None,
    ) -> None:
        """Record a diagnostic and log it"""
        diagnostic = ParseDiagnostic(kind=kind, message=message, source=self.source, sheet=sheet, row=row)
        self.diagnostics.append(diagnostic)
        log = logger.info if diagnostic.is_sheet_level else logger.debug
        log(
            "Parse diagnostic",
            kind=kind.value,
            source=self.source,
            sheet=sheet,
            row=row,
            detail=message,
        )

    def count(self, kind: DiagnosticKind) -> int:
        return sum(1 for d in self.diagnostics if d.kind == kind)

    @property
    def dropped_rows(self) -> int:
        return self.count(DiagnosticKind.ROW_INVALID) + self.count(DiagnosticKind.ROW_SKIPPED)

    def warnings(self) -> List[str]:
        """
        Human-readable warnings for operators.

        Sheet-level diagnostics are reported one by one; row-level drops are
        folded into a single line per kind so a long sheet does not flood
        the response.
        """
        messages = [str(d) for d in self.diagnostics if d.is_sheet_level]
        row_kinds = Counter(d.kind for d in self.diagnostics if d.kind in (
            DiagnosticKind.ROW_INVALID, DiagnosticKind.ROW_SKIPPED,
        ))
        for kind, count in sorted(row_kinds.items(), key=lambda item: item[0].value):
            label = "invalid" if kind == DiagnosticKind.ROW_INVALID else "subtotal/non-data"
            messages.append(f"{self.source}: dropped {count} {label} row(s)")
        return messages
