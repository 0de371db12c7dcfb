"""
Test Suite Configuration
"""
import io
import os
import zipfile
from datetime import date
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Sequence

os.environ.setdefault("APP_ENV", "testing")

import pytest
from openpyxl import Workbook as OpenpyxlWorkbook
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from retail_analytics.config import Settings
from retail_analytics.database.models import Base
from retail_analytics.ingestion.workbook import Workbook, open_workbook

WEEK_END = date(2025, 8, 17)

Rows = List[List[Any]]


def build_xlsx(sheets: Dict[str, Rows]) -> bytes:
    """Write sheets (name -> rows, None for blank cells) to .xlsx bytes."""
    book = OpenpyxlWorkbook()
    book.remove(book.active)
    for name, rows in sheets.items():
        sheet = book.create_sheet(title=name)
        for row in rows:
            sheet.append(row)
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


def corrupt_member(payload: bytes, member: str, data: bytes = b"<not xml") -> bytes:
    """Rewrite one member of an .xlsx zip, leaving the archive itself valid."""
    source = zipfile.ZipFile(io.BytesIO(payload))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
        for item in source.infolist():
            target.writestr(item, data if item.filename == member else source.read(item.filename))
    return buffer.getvalue()


def store_sales_rows(stores: Sequence[Sequence[Any]], preamble: int = 3, footer: Optional[str] = None) -> Rows:
    """Store-sales export layout: title rows, header, one row per store, optional footer."""
    rows: Rows = [["Weekly Store Sales Report"], ["Week ending 08/17/2025"]]
    rows.extend([[]] * max(preamble - 2, 0))
    rows.append(["Store Number", "Store Name", "Total Units", "Net Sales $"])
    rows.extend(list(s) for s in stores)
    if footer:
        rows.append([None, footer, None, None])
    return rows


def sales_perf_rows(skus: Sequence[Sequence[Any]], preamble: int = 5) -> Rows:
    """Sales/inventory performance layout: long preamble, UPC header, one row per SKU."""
    rows: Rows = [["Sales & Inventory Performance"], ["Vendor: Acme Beauty"]]
    rows.extend([[]] * max(preamble - 2, 0))
    rows.append(["UPC", "ULTA Item Description", "Sales TY Units", "Sales TY $"])
    rows.extend(list(s) for s in skus)
    rows.append(["Overall Result", None, 999, 9999])
    return rows


TWO_STORES = [["0001", "Store #1", 100, 1000], ["0002", "Store #2", 50, 500]]
TWO_SKUS = [["111111", "Lip Gloss", 60, 600], ["222222", "Eye Liner", 40, 400]]


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def xlsx() -> Callable[[Dict[str, Rows]], bytes]:
    return build_xlsx


@pytest.fixture
def workbook_of() -> Callable[..., Workbook]:
    """Build an in-memory workbook and open it with the reader"""
    def _open(sheets: Dict[str, Rows], source: str = "test.xlsx") -> Workbook:
        return open_workbook(build_xlsx(sheets), source=source)
    return _open


@pytest.fixture
def store_sales_xlsx() -> bytes:
    return build_xlsx({"StoreSalesReport": store_sales_rows(TWO_STORES, footer="Total: 2 stores")})


@pytest.fixture
def sales_perf_xlsx() -> bytes:
    return build_xlsx({
        "Year to Date": sales_perf_rows([["333333", "Decoy", 1, 1]]),
        "Last Closed Week": sales_perf_rows(TWO_SKUS),
    })


@pytest.fixture
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()
