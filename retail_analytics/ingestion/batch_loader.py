"""
Batch Loader

Offline ingestion of a directory of weekly exports, one store-sales
workbook at a time. Each workbook's week-end date comes from its file name
and its allocator is the sibling Sales_Inv_Perf workbook carrying the same
date, if any.

    Store-Sales_Weekly-2025-08-17.xlsx
    Sales_Inv_Perf__Weekly-2025-08-17.xlsx   <- allocator for that week
"""

import asyncio
import hashlib
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from retail_analytics.config import get_settings
from retail_analytics.database.facts import insert_facts, iso_week_of
from retail_analytics.exceptions import MalformedDocument
from retail_analytics.transformation.allocation import allocate
from .naming import FileKind, classify_filename, week_end_from_filename
from .pipeline import pseudo_fallback_warning
from .sales_perf import parse_sales_perf_file
from .store_sales import parse_store_sales_file

logger = structlog.get_logger(__name__)


class LoadStatus(str, Enum):
    """Batch load status"""
    COMPLETED = "completed"
    PARTIAL = "partial"  # stored, but allocated to the pseudo-SKU
    SKIPPED = "skipped"
    FAILED = "failed"


class LoadResult(BaseModel):
    """Result of loading one store-sales workbook"""
    file_path: str
    status: LoadStatus
    allocator_path: Optional[str] = None
    week_end_date: Optional[date] = None
    iso_week: Optional[str] = None
    stores: int = 0
    skus: int = 0
    rows: int = 0
    inserted: int = 0
    warnings: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    file_hash: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    load_duration_seconds: float = 0


class BatchLoader:
    """
    Loads weekly store-sales workbooks (plus their allocators) from disk.

    Storage errors (PersistenceFailure) are not caught: the run stops and
    can be re-run safely since facts are inserted at most once.

    Example:
        async with get_db() as db:
            loader = BatchLoader(db)
            results = await loader.load_directory("data/")
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _compute_file_hash(self, file_path: Path) -> str:
        """MD5 of the file, logged so re-runs of the same export are recognizable"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    @staticmethod
    def find_allocator(store_file: Path, week_end_date: date) -> Optional[Path]:
        """First Sales_Inv_Perf workbook next to `store_file` for the same week-end date."""
        candidates = sorted(store_file.parent.glob(f"*-{week_end_date.isoformat()}*.xlsx"))
        for candidate in candidates:
            if classify_filename(candidate.name) == FileKind.ALLOCATOR:
                return candidate
        return None

    def _finish(self, result: LoadResult) -> LoadResult:
        result.completed_at = datetime.utcnow()
        result.load_duration_seconds = (result.completed_at - result.started_at).total_seconds()
        return result

    async def load(self, file_path: Union[str, Path]) -> LoadResult:
        """
        Load one store-sales workbook.

        Returns:
            LoadResult: SKIPPED when the name carries no week-end date, FAILED
            when the workbook cannot be read or has no store rows
        """
        file_path = Path(file_path)
        result = LoadResult(
            file_path=str(file_path),
            status=LoadStatus.COMPLETED,
            started_at=datetime.utcnow(),
        )

        week_end_date = week_end_from_filename(file_path)
        if week_end_date is None:
            logger.warning("Could not parse week-end date from file name", file=str(file_path))
            result.status = LoadStatus.SKIPPED
            result.error_message = "file name has no -YYYY-MM-DD week-end date"
            return self._finish(result)

        result.week_end_date = week_end_date
        result.iso_week = iso_week_of(week_end_date)
        result.file_hash = self._compute_file_hash(file_path)

        log = logger.bind(file=file_path.name, iso_week=result.iso_week)
        log.info("Starting batch load")

        try:
            stores = await asyncio.to_thread(parse_store_sales_file, file_path, week_end_date)
            result.warnings.extend(stores.warnings())
            if not stores.rows:
                result.status = LoadStatus.FAILED
                result.error_message = "no store rows found"
                log.error("Batch load failed", error=result.error_message)
                return self._finish(result)

            skus = []
            allocator = self.find_allocator(file_path, week_end_date)
            if allocator is not None:
                result.allocator_path = str(allocator)
                try:
                    parsed = await asyncio.to_thread(parse_sales_perf_file, allocator, week_end_date)
                    result.warnings.extend(parsed.warnings())
                    skus = parsed.rows
                except MalformedDocument as e:
                    result.warnings.append(f"{allocator.name}: {e}")
        except MalformedDocument as e:
            result.status = LoadStatus.FAILED
            result.error_message = str(e)
            log.error("Batch load failed", error=str(e))
            return self._finish(result)

        if not skus:
            result.status = LoadStatus.PARTIAL
            result.warnings.append(
                pseudo_fallback_warning(len(stores.rows), allocator.name if allocator else None)
            )

        rows = allocate(stores.rows, skus)
        written = await insert_facts(self.session, rows)

        result.stores = len(stores.rows)
        result.skus = len(skus)
        result.rows = len(rows)
        result.inserted = written.inserted
        self._finish(result)

        log.info(
            "Batch load completed",
            status=result.status.value,
            allocator=allocator.name if allocator else None,
            rows=result.rows,
            inserted=result.inserted,
            duration_seconds=result.load_duration_seconds,
        )
        return result

    async def load_directory(
        self,
        directory: Union[str, Path, None] = None,
        pattern: Optional[str] = None,
    ) -> List[LoadResult]:
        """
        Load every store-sales workbook under `directory`, in file name order.

        Args:
            directory: Defaults to the configured data directory
            pattern: Glob for store-sales workbooks, defaults to the configured one
        """
        ingestion = get_settings().ingestion
        directory = Path(directory or ingestion.data_dir)
        pattern = pattern or ingestion.file_glob

        files = sorted(
            (p for p in directory.glob(pattern) if classify_filename(p.name) == FileKind.STORE_TOTALS),
            key=lambda p: p.name,
        )
        logger.info(f"Found {len(files)} files to load", directory=str(directory), pattern=pattern)

        results = []
        for file_path in files:
            results.append(await self.load(file_path))

        completed = sum(1 for r in results if r.status == LoadStatus.COMPLETED)
        partial = sum(1 for r in results if r.status == LoadStatus.PARTIAL)
        failed = sum(1 for r in results if r.status in (LoadStatus.FAILED, LoadStatus.SKIPPED))
        logger.info(
            f"Directory load completed: {completed} allocated, {partial} pseudo-SKU, {failed} failed",
            total_files=len(files),
            inserted=sum(r.inserted for r in results),
        )
        return results
