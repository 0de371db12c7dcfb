"""
Fact Ingestion

Writes allocated rows into the star schema, at most once per
(week, store, SKU).

Rows are partitioned by ISO week. For each week the Week, Store and Sku
dimension rows are resolved or created, the (store, SKU) pairs already
holding a fact for that week are loaded, and only new pairs are inserted.
Inserts also use ON CONFLICT DO NOTHING against the unique constraint on
sales_facts, so a concurrent ingestion of the same week cannot double-count.

Each week commits on its own. A storage error rolls back the current week
and raises PersistenceFailure; weeks committed earlier stay committed.
Re-running is always safe.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retail_analytics.config import get_settings
from retail_analytics.exceptions import PersistenceFailure
from retail_analytics.ingestion.records import NormalizedRow
from .models import SalesFact, Sku, Store, Week

logger = structlog.get_logger(__name__)

_ISO_WEEK = re.compile(r"^\d{4}-W\d{2}$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class InsertResult:
    """Outcome of insert_facts"""
    inserted: int = 0
    skipped: int = 0
    weeks: Dict[str, int] = field(default_factory=dict)  # iso -> inserted


# =============================================================================
# WEEK ARITHMETIC
# =============================================================================

def iso_week_of(day: date) -> str:
    """ISO-8601 week id, e.g. date(2025, 8, 17) -> "2025-W33"."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def week_bounds(day: date) -> Tuple[date, date]:
    """Monday and Sunday of the ISO week containing `day`."""
    start = day - timedelta(days=day.isoweekday() - 1)
    return start, start + timedelta(days=6)


# =============================================================================
# DIMENSIONS
# =============================================================================

def _insert_for(session: AsyncSession, model):
    """INSERT construct that supports ON CONFLICT for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise PersistenceFailure(f"Unsupported database dialect: {dialect}")


async def ensure_week(session: AsyncSession, week_end_date: date) -> Week:
    """Resolve or create the Week containing `week_end_date`."""
    iso = iso_week_of(week_end_date)
    start, end = week_bounds(week_end_date)
    stmt = _insert_for(session, Week).values(
        iso=iso,
        year=start.year,
        start_date=start,
        end_date=end,
    ).on_conflict_do_nothing(index_elements=["iso"])
    await session.execute(stmt)
    return (await session.execute(select(Week).where(Week.iso == iso))).scalar_one()


async def ensure_store(session: AsyncSession, code: str, name: Optional[str] = None) -> int:
    """Resolve or create a Store by code; the name is only used on creation."""
    stmt = _insert_for(session, Store).values(
        code=code,
        name=name or code,
    ).on_conflict_do_nothing(index_elements=["code"])
    await session.execute(stmt)
    return (await session.execute(select(Store.id).where(Store.code == code))).scalar_one()


async def ensure_sku(session: AsyncSession, upc: str, name: Optional[str] = None) -> int:
    """Resolve or create a Sku by UPC; the name is only used on creation."""
    stmt = _insert_for(session, Sku).values(
        upc=upc,
        name=name or upc,
    ).on_conflict_do_nothing(index_elements=["upc"])
    await session.execute(stmt)
    return (await session.execute(select(Sku.id).where(Sku.upc == upc))).scalar_one()


# =============================================================================
# FACTS
# =============================================================================

def _units(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if math.isfinite(number) else 0


def _revenue(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _partition_by_week(rows: Iterable[NormalizedRow]) -> Dict[str, List[NormalizedRow]]:
    partitions: Dict[str, List[NormalizedRow]] = {}
    for row in rows:
        partitions.setdefault(iso_week_of(row.week_end_date), []).append(row)
    return partitions


async def _existing_pairs(session: AsyncSession, week_id: int) -> Set[Tuple[int, int]]:
    result = await session.execute(
        select(SalesFact.store_id, SalesFact.sku_id).where(SalesFact.week_id == week_id)
    )
    return {(store_id, sku_id) for store_id, sku_id in result.all()}


async def _insert_week(
    session: AsyncSession,
    iso: str,
    rows: Sequence[NormalizedRow],
    chunk_size: int,
) -> Tuple[int, int]:
    week = await ensure_week(session, rows[0].week_end_date)

    store_ids: Dict[str, int] = {}
    sku_ids: Dict[str, int] = {}
    for row in rows:
        if row.store_code not in store_ids:
            store_ids[row.store_code] = await ensure_store(session, row.store_code, row.store_name)
        if row.upc not in sku_ids:
            sku_ids[row.upc] = await ensure_sku(session, row.upc, row.sku_name)

    seen = await _existing_pairs(session, week.id)

    pending: List[Dict[str, Any]] = []
    skipped = 0
    for row in rows:
        key = (store_ids[row.store_code], sku_ids[row.upc])
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        pending.append({
            "week_id": week.id,
            "store_id": key[0],
            "sku_id": key[1],
            "units": _units(row.units),
            "revenue": _revenue(row.revenue),
        })

    inserted = 0
    for start in range(0, len(pending), chunk_size):
        chunk = pending[start:start + chunk_size]
        stmt = _insert_for(session, SalesFact).values(chunk).on_conflict_do_nothing(
            index_elements=["week_id", "store_id", "sku_id"]
        )
        result = await session.execute(stmt)
        # Rows lost to a concurrent writer are not counted
        inserted += max(result.rowcount or 0, 0)

    logger.info(
        "Week facts written",
        iso_week=iso,
        week_id=week.id,
        stores=len(store_ids),
        skus=len(sku_ids),
        inserted=inserted,
        skipped=skipped,
    )
    return inserted, skipped


async def insert_facts(
    session: AsyncSession,
    rows: Sequence[NormalizedRow],
    chunk_size: Optional[int] = None,
) -> InsertResult:
    """
    Insert fact rows, skipping (week, store, SKU) triples that already exist.

    Within one call the first row for a triple wins; later duplicates are
    skipped as well.

    Raises:
        PersistenceFailure: If the store rejects a write for some week
    """
    outcome = InsertResult()
    if not rows:
        return outcome

    chunk_size = chunk_size or get_settings().ingestion.insert_chunk_size

    for iso, partition in _partition_by_week(rows).items():
        try:
            inserted, skipped = await _insert_week(session, iso, partition, chunk_size)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Fact insert failed", iso_week=iso, error=str(e), error_type=type(e).__name__)
            raise PersistenceFailure(f"Failed to write facts for {iso}: {e}", iso_week=iso) from e

        outcome.inserted += inserted
        outcome.skipped += skipped
        outcome.weeks[iso] = inserted

    return outcome


# =============================================================================
# TEST CLEANUP
# =============================================================================

async def resolve_week(session: AsyncSession, week: Optional[str]) -> Optional[Week]:
    """
    Find a Week by ISO id ("2025-W33"), by a date inside it ("2025-08-17")
    or the most recent one ("latest" or None).
    """
    if not week or week == "latest":
        stmt = select(Week).order_by(Week.start_date.desc()).limit(1)
        return (await session.execute(stmt)).scalar_one_or_none()

    if _ISO_WEEK.match(week):
        return (await session.execute(select(Week).where(Week.iso == week))).scalar_one_or_none()

    if _ISO_DATE.match(week):
        try:
            day = date.fromisoformat(week)
        except ValueError:
            return None
        stmt = select(Week).where(Week.start_date <= day, Week.end_date >= day).limit(1)
        found = (await session.execute(stmt)).scalar_one_or_none()
        if found is not None:
            return found
        stmt = select(Week).where(Week.iso == iso_week_of(day))
        return (await session.execute(stmt)).scalar_one_or_none()

    return None


async def cleanup_week(
    session: AsyncSession,
    week: Optional[str],
    store_codes: Optional[Sequence[str]] = None,
    drop_empty_week: bool = True,
) -> Dict[str, Any]:
    """
    Delete a week's facts, optionally only for some stores.

    Unknown store codes are ignored; if none of them exist the whole week is
    cleared. The Week row is dropped once it holds no facts, unless
    `drop_empty_week` is False.
    """
    found = await resolve_week(session, week)
    if found is None:
        return {"ok": True, "deleted": 0, "week": week or "unknown"}

    week_id, iso = found.id, found.iso

    stmt = delete(SalesFact).where(SalesFact.week_id == week_id)
    if store_codes:
        store_ids = (
            await session.execute(select(Store.id).where(Store.code.in_(list(store_codes))))
        ).scalars().all()
        if store_ids:
            stmt = stmt.where(SalesFact.store_id.in_(store_ids))

    deleted = (await session.execute(stmt)).rowcount or 0

    week_deleted = False
    if drop_empty_week:
        remaining = (
            await session.execute(
                select(func.count()).select_from(SalesFact).where(SalesFact.week_id == week_id)
            )
        ).scalar_one()
        if remaining == 0:
            await session.execute(delete(Week).where(Week.id == week_id))
            week_deleted = True

    await session.commit()
    logger.info(
        "Week cleaned up",
        iso_week=iso,
        deleted=deleted,
        store_codes=list(store_codes or []),
        week_deleted=week_deleted,
    )
    return {"ok": True, "deleted": deleted, "iso_week": iso, "week_deleted": week_deleted}
