"""
Unit Tests - Allocation Engine
"""
import pytest

from retail_analytics.database.models import ALL_STORES_CODE, PSEUDO_UPC
from retail_analytics.ingestion.records import SkuTotal, StoreTotal
from retail_analytics.transformation.allocation import allocate, allocation_summary

from conftest import WEEK_END


def store(code: str, units: float, revenue: float) -> StoreTotal:
    return StoreTotal(week_end_date=WEEK_END, store_code=code, store_name=f"Store {code}", units=units, revenue=revenue)


def sku(upc: str, units: float, revenue: float) -> SkuTotal:
    return SkuTotal(week_end_date=WEEK_END, upc=upc, name=f"SKU {upc}", units=units, revenue=revenue)


STORES = [store("0001", 100, 1000), store("0002", 50, 500)]
SKUS = [sku("111111", 60, 600), sku("222222", 40, 400)]


class TestAllocate:
    """Tests for allocate"""

    def test_no_store_totals(self):
        assert allocate([], SKUS) == []
        assert allocate([], []) == []

    def test_rows_carry_real_store_codes(self):
        """SKU totals are chain-wide but every allocated row belongs to a real store"""
        for skus in (SKUS, []):
            rows = allocate(STORES, skus)

            assert {r.store_code for r in rows} == {"0001", "0002"}
            assert ALL_STORES_CODE not in {r.store_code for r in rows}

    def test_pseudo_sku_fallback(self):
        rows = allocate([store("0001", 99.5, 1000.25), store("0002", 50.4, 0)], [])

        assert len(rows) == 2
        assert all(r.upc == PSEUDO_UPC and r.sku_name == "All SKUs" for r in rows)
        assert [(r.store_code, r.units, r.revenue) for r in rows] == [
            ("0001", 100, 1000.25),
            ("0002", 50, 0),
        ]

    def test_proportional_cross_join(self):
        rows = allocate(STORES, SKUS)

        assert [(r.store_code, r.upc, r.units, r.revenue) for r in rows] == [
            ("0001", "111111", 60, pytest.approx(600.0)),
            ("0001", "222222", 40, pytest.approx(400.0)),
            ("0002", "111111", 30, pytest.approx(300.0)),
            ("0002", "222222", 20, pytest.approx(200.0)),
        ]
        assert all(isinstance(r.units, int) for r in rows)
        assert rows[0].store_name == "Store 0001"
        assert rows[0].sku_name == "SKU 111111"
        assert rows[0].week_end_date == WEEK_END

    def test_zero_units_use_equal_share(self):
        """Units and revenue fall back to equal shares independently"""
        rows = allocate([store("0001", 10, 90)], [sku("111111", 0, 30), sku("222222", 0, 60), sku("333333", 0, 0)])

        assert [r.units for r in rows] == [3, 3, 3]
        assert [r.revenue for r in rows] == [pytest.approx(30.0), pytest.approx(60.0), pytest.approx(0.0)]

    def test_zero_revenue_use_equal_share(self):
        rows = allocate([store("0001", 10, 100)], [sku("111111", 10, 0), sku("222222", 0, 0)])

        assert [r.units for r in rows] == [10, 0]
        assert [r.revenue for r in rows] == [pytest.approx(50.0), pytest.approx(50.0)]

    def test_units_rounded_half_up_revenue_unrounded(self):
        rows = allocate([store("0001", 5, 10)], [sku("111111", 1, 1), sku("222222", 1, 2)])

        assert [r.units for r in rows] == [3, 3]
        assert rows[0].revenue == pytest.approx(10 / 3)
        assert rows[1].revenue == pytest.approx(20 / 3)

    @pytest.mark.parametrize("n_skus", [1, 3, 7])
    def test_revenue_is_conserved_per_store(self, n_skus):
        stores = [store("0001", 101, 1234.56), store("0002", 7, 0.99), store("0003", 0, 50)]
        skus = [sku(f"{100000 + i}", i + 1, (i + 1) * 3.3) for i in range(n_skus)]

        rows = allocate(stores, skus)

        assert len(rows) == len(stores) * n_skus
        for s in stores:
            mine = [r for r in rows if r.store_code == s.store_code]
            assert sum(r.revenue for r in mine) == pytest.approx(s.revenue)
            assert abs(sum(r.units for r in mine) - s.units) <= max(n_skus - 1, 0)


class TestAllocationSummary:
    """Tests for allocation_summary"""

    def test_summary(self):
        summary = allocation_summary(allocate(STORES, SKUS))

        assert summary == {
            "rows": 4,
            "stores": 2,
            "skus": 2,
            "units": 150,
            "revenue": 1500.0,
            "pseudo": False,
        }

    def test_pseudo_and_empty(self):
        assert allocation_summary(allocate(STORES, []))["pseudo"] is True
        assert allocation_summary([])["rows"] == 0
