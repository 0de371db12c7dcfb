"""
Test Support Endpoints

POST /api/v1/test/cleanup removes a week's facts so end-to-end tests can
re-ingest from a clean slate. Requires the X-Test-Secret header:
TEST_API_SECRET when set, "dev-secret" outside production. Production
never accepts the default.
"""

import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from retail_analytics.config import Settings, get_settings
from retail_analytics.database.connection import get_db_dependency
from retail_analytics.database.facts import cleanup_week

router = APIRouter()
logger = structlog.get_logger(__name__)

DEFAULT_TEST_SECRET = "dev-secret"


class CleanupRequest(BaseModel):
    """Which facts to delete"""
    week: Optional[str] = None  # "2025-W33", "2025-08-17" or "latest"
    store_codes: Optional[List[str]] = None
    drop_empty_week: bool = True


def expected_secret(settings: Settings) -> Optional[str]:
    configured = settings.security.test_api_secret
    if configured is not None:
        return configured.get_secret_value()
    if settings.is_production:
        return None
    return DEFAULT_TEST_SECRET


@router.post("/cleanup")
async def cleanup(
    body: CleanupRequest,
    x_test_secret: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_dependency),
):
    expected = expected_secret(get_settings())
    if not expected or not x_test_secret or not secrets.compare_digest(x_test_secret, expected):
        logger.warning("Cleanup rejected: invalid secret")
        return JSONResponse(status_code=403, content={"ok": False, "error": "invalid secret"})

    return await cleanup_week(
        db,
        body.week,
        store_codes=body.store_codes,
        drop_empty_week=body.drop_empty_week,
    )
