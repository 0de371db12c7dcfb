"""
Read-side queries over the weekly sales facts.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import PSEUDO_UPC, SalesFact, Sku, Store, Week


async def list_weeks(
    session: AsyncSession,
    limit: int = 104,
    as_of: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Weeks that started on or before `as_of` (today by default), newest first."""
    as_of = as_of or date.today()
    stmt = (
        select(Week)
        .where(Week.start_date <= as_of)
        .order_by(Week.start_date.desc())
        .limit(limit)
    )
    weeks = (await session.execute(stmt)).scalars().all()
    return [
        {
            "id": w.id,
            "iso": w.iso,
            "year": w.year,
            "start_date": w.start_date,
            "end_date": w.end_date,
        }
        for w in weeks
    ]


async def data_health(session: AsyncSession, weeks: int = 12) -> List[Dict[str, Any]]:
    """
    Allocation coverage for the latest `weeks` weeks, oldest first.

    A store counts as pseudo when any of its facts for the week uses the
    PSEUDO_UPC SKU, i.e. its totals could not be allocated to real SKUs.
    """
    latest = (
        select(Week.id, Week.iso, Week.start_date)
        .order_by(Week.start_date.desc())
        .limit(weeks)
        .subquery()
    )

    pseudo_store = case((Sku.upc == PSEUDO_UPC, SalesFact.store_id), else_=None)
    stmt = (
        select(
            latest.c.iso,
            latest.c.start_date,
            func.count(SalesFact.store_id.distinct()).label("total_stores"),
            func.count(pseudo_store.distinct()).label("pseudo_stores"),
        )
        .select_from(latest)
        .outerjoin(SalesFact, SalesFact.week_id == latest.c.id)
        .outerjoin(Sku, Sku.id == SalesFact.sku_id)
        .group_by(latest.c.id, latest.c.iso, latest.c.start_date)
        .order_by(latest.c.start_date.asc())
    )

    report = []
    for row in (await session.execute(stmt)).all():
        total = int(row.total_stores or 0)
        pseudo = int(row.pseudo_stores or 0)
        fully = max(0, total - pseudo)
        pct = (fully / total) * 100 if total > 0 else 0.0
        report.append({
            "iso_week": row.iso,
            "total_stores": total,
            "pseudo_stores": pseudo,
            "pct_full_allocated": round(pct, 1),
        })
    return report


async def week_fact_counts(session: AsyncSession, iso_weeks: Sequence[str]) -> Dict[str, int]:
    """Number of facts stored per ISO week (weeks without a Week row are omitted)."""
    if not iso_weeks:
        return {}
    stmt = (
        select(Week.iso, func.count(SalesFact.id))
        .select_from(Week)
        .outerjoin(SalesFact, SalesFact.week_id == Week.id)
        .where(Week.iso.in_(list(iso_weeks)))
        .group_by(Week.iso)
    )
    return {iso: int(count) for iso, count in (await session.execute(stmt)).all()}


async def store_counts_by_week(session: AsyncSession, iso_weeks: Sequence[str]) -> Dict[str, int]:
    """Distinct stores with facts per ISO week."""
    if not iso_weeks:
        return {}
    stmt = (
        select(Week.iso, func.count(SalesFact.store_id.distinct()))
        .select_from(Week)
        .outerjoin(SalesFact, SalesFact.week_id == Week.id)
        .where(Week.iso.in_(list(iso_weeks)))
        .group_by(Week.iso)
    )
    return {iso: int(count) for iso, count in (await session.execute(stmt)).all()}


async def store_fact_counts(
    session: AsyncSession,
    iso_weeks: Sequence[str],
) -> Dict[str, List[Tuple[str, int]]]:
    """
    Facts per store for each ISO week, as (store name or code, count) pairs
    in store creation order. Weeks without facts are omitted.
    """
    if not iso_weeks:
        return {}
    stmt = (
        select(Week.iso, Store.name, Store.code, func.count(SalesFact.id))
        .select_from(SalesFact)
        .join(Week, Week.id == SalesFact.week_id)
        .join(Store, Store.id == SalesFact.store_id)
        .where(Week.iso.in_(list(iso_weeks)))
        .group_by(Week.iso, Store.id, Store.name, Store.code)
        .order_by(Week.iso, Store.id)
    )
    counts: Dict[str, List[Tuple[str, int]]] = {}
    for iso, name, code, count in (await session.execute(stmt)).all():
        counts.setdefault(iso, []).append((name or code, int(count)))
    return counts
