"""
Weekly Upload Pipeline

Handles one upload: a week-end date plus any mix of store-sales and
sales/inventory performance workbooks.

    classify files -> parse store totals -> parse SKU totals (first
    allocator only) -> allocate -> insert facts

Files are processed one at a time in upload order. A file that is not a
spreadsheet is reported as an error and its siblings are still processed.
Without any store totals the whole upload is rejected.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from retail_analytics.database.facts import insert_facts, iso_week_of
from retail_analytics.exceptions import MalformedDocument, NoStoreTotalsProvided
from retail_analytics.transformation.allocation import allocate, allocation_summary
from .diagnostics import ParseResult
from .naming import FileKind, classify_filename
from .records import SkuTotal, StoreTotal
from .sales_perf import parse_sales_perf_bytes
from .store_sales import parse_store_sales_bytes

logger = structlog.get_logger(__name__)


@dataclass
class UploadedFile:
    """An uploaded workbook: original file name and raw bytes"""
    name: str
    payload: bytes


class FileDetail(BaseModel):
    """How one uploaded file was handled"""
    name: str
    kind: FileKind
    rows: int = 0
    error: Optional[str] = None


class IngestReport(BaseModel):
    """Outcome of one weekly upload"""
    ok: bool = True
    week_end_date: date
    iso_week: str
    files: int = 0
    rows: int = 0
    inserted: int = 0
    details: List[FileDetail] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


def pseudo_fallback_warning(stores: int, allocator: Optional[str] = None) -> str:
    if allocator:
        return (
            f"Sales_Inv_Perf workbook {allocator} yielded no SKU rows; "
            f"falling back to pseudo-SKU 'ALL' for {stores} store(s)"
        )
    return f"No Sales_Inv_Perf workbook detected; falling back to pseudo-SKU 'ALL' for {stores} store(s)"


async def ingest_upload(
    session: AsyncSession,
    week_end_date: date,
    files: Sequence[UploadedFile],
) -> IngestReport:
    """
    Parse, allocate and store one week's uploaded workbooks.

    Raises:
        NoStoreTotalsProvided: If no store-sales workbook is present, or none
            of them yields a store row
        PersistenceFailure: If the database rejects the facts
    """
    report = IngestReport(
        week_end_date=week_end_date,
        iso_week=iso_week_of(week_end_date),
        files=len(files),
    )
    log = logger.bind(week_end_date=week_end_date.isoformat(), iso_week=report.iso_week)

    kinds = [classify_filename(f.name) for f in files]
    if FileKind.STORE_TOTALS not in kinds:
        raise NoStoreTotalsProvided(
            "No Store-Sales files detected; upload at least one Store-Sales workbook "
            "(file name containing 'Store-Sales')"
        )

    store_totals: List[StoreTotal] = []
    sku_totals: List[SkuTotal] = []
    allocator_name: Optional[str] = None

    for upload, kind in zip(files, kinds):
        if kind == FileKind.IGNORED:
            report.details.append(FileDetail(name=upload.name, kind=FileKind.IGNORED))
            report.warnings.append(f"{upload.name}: not a Store-Sales or Sales_Inv_Perf workbook; ignored")
            continue

        if kind == FileKind.ALLOCATOR and allocator_name is not None:
            report.details.append(FileDetail(name=upload.name, kind=FileKind.IGNORED))
            report.warnings.append(
                f"{upload.name}: ignored, only the first Sales_Inv_Perf workbook ({allocator_name}) is used"
            )
            continue

        parser = parse_store_sales_bytes if kind == FileKind.STORE_TOTALS else parse_sales_perf_bytes
        try:
            result: ParseResult = await asyncio.to_thread(parser, upload.payload, week_end_date, upload.name)
        except MalformedDocument as e:
            log.warning("Upload file rejected", file=upload.name, error=str(e))
            report.details.append(FileDetail(name=upload.name, kind=FileKind.ERROR, error=str(e)))
            report.warnings.append(f"{upload.name}: {e}")
            continue

        report.details.append(FileDetail(name=upload.name, kind=kind, rows=len(result.rows)))
        report.warnings.extend(result.warnings())

        if kind == FileKind.STORE_TOTALS:
            store_totals.extend(result.rows)
        else:
            allocator_name = upload.name
            sku_totals = list(result.rows)

    if not store_totals:
        raise NoStoreTotalsProvided(
            "No Store-Sales files yielded store rows: "
            + ("; ".join(report.warnings) or "no StoreSalesReport data found")
        )

    if not sku_totals:
        report.warnings.append(pseudo_fallback_warning(len(store_totals), allocator_name))

    rows = allocate(store_totals, sku_totals)
    written = await insert_facts(session, rows)

    report.rows = len(rows)
    report.inserted = written.inserted

    log.info(
        "Weekly upload ingested",
        files=report.files,
        inserted=report.inserted,
        skipped=written.skipped,
        warnings=len(report.warnings),
        **allocation_summary(rows),
    )
    return report
