"""
Integration Tests - Fact Ingestion
"""
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from retail_analytics.database.facts import (
    cleanup_week,
    ensure_sku,
    ensure_store,
    ensure_week,
    insert_facts,
    iso_week_of,
    week_bounds,
)
from retail_analytics.database.models import SalesFact, Sku, Store, Week
from retail_analytics.database.queries import data_health, list_weeks, store_fact_counts, week_fact_counts
from retail_analytics.exceptions import PersistenceFailure
from retail_analytics.ingestion.records import NormalizedRow

WEEK_END = date(2025, 8, 17)
NEXT_WEEK_END = date(2025, 8, 24)


def row(store_code: str, upc: str, units=1, revenue=1.0, week_end=WEEK_END) -> NormalizedRow:
    return NormalizedRow(
        week_end_date=week_end,
        store_code=store_code,
        upc=upc,
        units=units,
        revenue=revenue,
        store_name=f"Store {store_code}",
        sku_name=f"SKU {upc}",
    )


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestWeekArithmetic:
    """Tests for ISO week helpers"""

    @pytest.mark.parametrize("day, iso", [
        (date(2025, 8, 17), "2025-W33"),
        (date(2025, 8, 11), "2025-W33"),
        (date(2024, 12, 30), "2025-W01"),
        (date(2021, 1, 3), "2020-W53"),
    ])
    def test_iso_week_of(self, day, iso):
        assert iso_week_of(day) == iso

    def test_week_bounds(self):
        assert week_bounds(date(2025, 8, 17)) == (date(2025, 8, 11), date(2025, 8, 17))
        assert week_bounds(date(2025, 8, 11)) == (date(2025, 8, 11), date(2025, 8, 17))


class TestDimensions:
    """Tests for ensure_week / ensure_store / ensure_sku"""

    async def test_ensure_week_is_idempotent(self, test_db):
        first = await ensure_week(test_db, WEEK_END)
        second = await ensure_week(test_db, date(2025, 8, 13))

        assert first.id == second.id
        assert (first.iso, first.year, first.start_date, first.end_date) == (
            "2025-W33", 2025, date(2025, 8, 11), date(2025, 8, 17),
        )
        assert await count(test_db, Week) == 1

    async def test_week_year_is_start_year(self, test_db):
        week = await ensure_week(test_db, date(2025, 1, 4))

        assert week.iso == "2025-W01"
        assert week.year == 2024
        assert week.start_date == date(2024, 12, 30)

    async def test_ensure_store_keeps_first_name(self, test_db):
        first = await ensure_store(test_db, "0001", "Store #1")
        second = await ensure_store(test_db, "0001", "Renamed")
        other = await ensure_store(test_db, "0002")

        assert first == second
        assert other != first
        stored = (await test_db.execute(select(Store).where(Store.code == "0002"))).scalar_one()
        assert stored.name == "0002"

    async def test_ensure_sku_defaults_name_to_upc(self, test_db):
        sku_id = await ensure_sku(test_db, "111111")

        assert sku_id == await ensure_sku(test_db, "111111", "Lip Gloss")
        stored = (await test_db.execute(select(Sku))).scalar_one()
        assert stored.name == "111111"


class TestInsertFacts:
    """Tests for insert_facts"""

    async def test_empty(self, test_db):
        result = await insert_facts(test_db, [])

        assert result.inserted == 0
        assert await count(test_db, Week) == 0

    async def test_second_call_inserts_nothing(self, test_db):
        rows = [row("0001", "111111", 60, 600.0), row("0001", "222222", 40, 400.0), row("0002", "111111")]

        first = await insert_facts(test_db, rows)
        second = await insert_facts(test_db, rows)

        assert first.inserted == 3
        assert second.inserted == 0
        assert second.skipped == 3
        assert await count(test_db, SalesFact) == 3

    async def test_duplicates_within_call_first_wins(self, test_db):
        rows = [row("0001", "111111", 5, 50.0), row("0001", "111111", 9, 90.0)]

        result = await insert_facts(test_db, rows)

        assert result.inserted == 1
        fact = (await test_db.execute(select(SalesFact))).scalar_one()
        assert (fact.units, fact.revenue) == (5, 50.0)

    async def test_partitions_by_week(self, test_db):
        rows = [row("0001", "111111"), row("0001", "111111", week_end=NEXT_WEEK_END), row("0002", "111111")]

        result = await insert_facts(test_db, rows, chunk_size=1)

        assert result.inserted == 3
        assert result.weeks == {"2025-W33": 2, "2025-W34": 1}
        assert await count(test_db, Week) == 2
        assert await count(test_db, Store) == 2
        assert await count(test_db, Sku) == 1

    async def test_new_pairs_added_to_existing_week(self, test_db):
        await insert_facts(test_db, [row("0001", "ALL", 100, 1000.0)])

        result = await insert_facts(test_db, [row("0001", "ALL", 1, 1.0), row("0001", "111111", 60, 600.0)])

        assert result.inserted == 1
        assert await count(test_db, SalesFact) == 2

    async def test_non_finite_measures_become_zero(self, test_db):
        await insert_facts(test_db, [row("0001", "111111", float("nan"), float("inf")), row("0002", "111111", None, None)])

        facts = (await test_db.execute(select(SalesFact))).scalars().all()
        assert [(f.units, f.revenue) for f in facts] == [(0, 0.0), (0, 0.0)]

    async def test_storage_constraint_backs_frontier(self, test_db):
        """The (week, store, sku) unique constraint rejects raw duplicate inserts"""
        await insert_facts(test_db, [row("0001", "111111")])
        fact = (await test_db.execute(select(SalesFact))).scalar_one()

        test_db.add(SalesFact(week_id=fact.week_id, store_id=fact.store_id, sku_id=fact.sku_id, units=1, revenue=1))
        with pytest.raises(IntegrityError):
            await test_db.flush()
        await test_db.rollback()

    async def test_storage_error_raises_persistence_failure(self, test_db, monkeypatch):
        await insert_facts(test_db, [row("0001", "111111")])

        async def broken(session, week_id):
            raise IntegrityError("SELECT", {}, Exception("boom"))

        monkeypatch.setattr("retail_analytics.database.facts._existing_pairs", broken)

        with pytest.raises(PersistenceFailure) as excinfo:
            await insert_facts(test_db, [row("0002", "111111", week_end=NEXT_WEEK_END)])

        assert excinfo.value.iso_week == "2025-W34"
        assert await count(test_db, SalesFact) == 1
        assert await count(test_db, Week) == 1


class TestCleanupWeek:
    """Tests for cleanup_week"""

    async def test_cleanup_by_iso(self, test_db):
        await insert_facts(test_db, [row("0001", "111111"), row("0002", "111111")])

        outcome = await cleanup_week(test_db, "2025-W33")

        assert outcome == {"ok": True, "deleted": 2, "iso_week": "2025-W33", "week_deleted": True}
        assert await count(test_db, SalesFact) == 0
        assert await count(test_db, Week) == 0

    async def test_cleanup_some_stores_by_date(self, test_db):
        await insert_facts(test_db, [row("0001", "111111"), row("0002", "111111")])

        outcome = await cleanup_week(test_db, "2025-08-13", store_codes=["0002", "nope"])

        assert outcome["deleted"] == 1
        assert outcome["week_deleted"] is False
        assert await count(test_db, SalesFact) == 1

    async def test_cleanup_latest_keeps_empty_week(self, test_db):
        await insert_facts(test_db, [row("0001", "111111"), row("0001", "111111", week_end=NEXT_WEEK_END)])

        outcome = await cleanup_week(test_db, "latest", drop_empty_week=False)

        assert outcome["iso_week"] == "2025-W34"
        assert outcome["week_deleted"] is False
        assert await count(test_db, Week) == 2

    async def test_unknown_week(self, test_db):
        assert await cleanup_week(test_db, "1999-W01") == {"ok": True, "deleted": 0, "week": "1999-W01"}


class TestQueries:
    """Tests for the read-side queries"""

    async def test_data_health(self, test_db):
        await insert_facts(test_db, [
            row("0001", "ALL"),
            row("0002", "111111"),
            row("0002", "222222"),
            row("0003", "111111"),
            row("0001", "111111", week_end=NEXT_WEEK_END),
        ])

        report = await data_health(test_db, weeks=12)

        assert report == [
            {"iso_week": "2025-W33", "total_stores": 3, "pseudo_stores": 1, "pct_full_allocated": 66.7},
            {"iso_week": "2025-W34", "total_stores": 1, "pseudo_stores": 0, "pct_full_allocated": 100.0},
        ]
        assert [r["iso_week"] for r in await data_health(test_db, weeks=1)] == ["2025-W34"]

    async def test_data_health_empty_week(self, test_db):
        await ensure_week(test_db, WEEK_END)

        report = await data_health(test_db)

        assert report == [{"iso_week": "2025-W33", "total_stores": 0, "pseudo_stores": 0, "pct_full_allocated": 0.0}]

    async def test_list_weeks_and_counts(self, test_db):
        await insert_facts(test_db, [row("0001", "111111"), row("0001", "111111", week_end=NEXT_WEEK_END)])

        weeks = await list_weeks(test_db)

        assert [w["iso"] for w in weeks] == ["2025-W34", "2025-W33"]
        assert await list_weeks(test_db, as_of=date(2025, 8, 12)) == [weeks[1]]
        assert await week_fact_counts(test_db, ["2025-W33", "2025-W40"]) == {"2025-W33": 1}

    async def test_store_fact_counts(self, test_db):
        await insert_facts(test_db, [
            row("0002", "111111"),
            row("0002", "222222"),
            row("0001", "111111"),
            row("0001", "111111", week_end=NEXT_WEEK_END),
        ])

        counts = await store_fact_counts(test_db, ["2025-W33", "2025-W34", "2025-W40"])

        assert counts == {
            "2025-W33": [("Store 0002", 2), ("Store 0001", 1)],
            "2025-W34": [("Store 0001", 1)],
        }
