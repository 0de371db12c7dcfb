"""
Data Health Endpoints

Shows, per week, how many stores were allocated to real SKUs versus the
pseudo-SKU fallback used when no Sales_Inv_Perf workbook was available.
"""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from retail_analytics.database.connection import get_db_dependency
from retail_analytics.database.queries import data_health, list_weeks

router = APIRouter()

DEFAULT_WEEKS = 12
MAX_WEEKS = 104


class WeekHealth(BaseModel):
    """Allocation coverage for one week"""
    iso_week: str
    total_stores: int
    pseudo_stores: int
    pct_full_allocated: float


class WeekOut(BaseModel):
    """Week dimension row"""
    id: int
    iso: str
    year: int
    start_date: date
    end_date: date


class WeeksResponse(BaseModel):
    weeks: List[WeekOut]


@router.get("/data-health", response_model=List[WeekHealth])
async def get_data_health(
    weeks: int = Query(DEFAULT_WEEKS, description="Number of most recent weeks (1-104)"),
    db: AsyncSession = Depends(get_db_dependency),
) -> List[WeekHealth]:
    """Allocation coverage for the most recent weeks, oldest first."""
    if weeks <= 0:
        weeks = DEFAULT_WEEKS
    weeks = min(weeks, MAX_WEEKS)
    return [WeekHealth(**row) for row in await data_health(db, weeks)]


@router.get("/weeks", response_model=WeeksResponse)
async def get_weeks(db: AsyncSession = Depends(get_db_dependency)) -> WeeksResponse:
    """Weeks that have started, newest first (about two years)."""
    return WeeksResponse(weeks=[WeekOut(**w) for w in await list_weeks(db, limit=MAX_WEEKS)])
