"""
Weekly Upload Endpoint

POST /api/v1/ingest/weekly  (multipart/form-data)
    week_end_date: YYYY-MM-DD
    file: one or more .xlsx workbooks (repeat the field)
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from retail_analytics.database.connection import get_db_dependency
from retail_analytics.exceptions import NoStoreTotalsProvided
from retail_analytics.ingestion.pipeline import IngestReport, UploadedFile, ingest_upload

router = APIRouter()
logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@router.post(
    "/weekly",
    response_model=IngestReport,
    responses={400: {"description": "Bad request or no Store-Sales workbook"}, 500: {"description": "Ingestion failed"}},
)
async def ingest_weekly(
    week_end_date: Optional[str] = Form(default=None),
    file: Optional[List[UploadFile]] = File(default=None),
    db: AsyncSession = Depends(get_db_dependency),
):
    """
    Ingest one week of exports: Store-Sales workbook(s) plus an optional
    Sales_Inv_Perf workbook used to allocate store totals to SKUs.
    """
    when = (week_end_date or "").strip()
    if not when:
        return _error(400, "Missing week_end_date (YYYY-MM-DD)")
    try:
        week_end = date.fromisoformat(when)
    except ValueError:
        return _error(400, "Invalid week_end_date, expected YYYY-MM-DD")

    if not file:
        return _error(400, "No files provided (field name: file)")

    uploads = [UploadedFile(name=f.filename or "upload.xlsx", payload=await f.read()) for f in file]

    try:
        report = await ingest_upload(db, week_end, uploads)
    except NoStoreTotalsProvided as e:
        logger.warning("Upload rejected", error=str(e), files=[u.name for u in uploads])
        return _error(400, str(e))
    except Exception as e:
        logger.exception("Weekly ingestion failed", error=str(e), files=[u.name for u in uploads])
        await db.rollback()
        return _error(500, str(e))

    return report
