"""
Spreadsheet Ingestion Module

Parsers and file conventions. The upload pipeline and the batch loader
live in `retail_analytics.ingestion.pipeline` and
`retail_analytics.ingestion.batch_loader`.
"""
from .diagnostics import DiagnosticKind, ParseDiagnostic, ParseResult
from .naming import FileKind, classify_filename, week_end_from_filename
from .records import NormalizedRow, SkuTotal, StoreTotal
from .sales_perf import parse_sales_perf
from .store_sales import parse_store_sales
from .workbook import Workbook, open_workbook

__all__ = [
    "DiagnosticKind",
    "ParseDiagnostic",
    "ParseResult",
    "FileKind",
    "classify_filename",
    "week_end_from_filename",
    "NormalizedRow",
    "SkuTotal",
    "StoreTotal",
    "parse_sales_perf",
    "parse_store_sales",
    "Workbook",
    "open_workbook",
]
