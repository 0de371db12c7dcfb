"""
Database Models - Weekly Sales Star Schema

Fact Tables:
- SalesFact: units and revenue per (week, store, SKU)

Dimension Tables:
- Week: ISO-8601 week (Monday to Sunday)
- Store: retail store keyed by its business code
- Sku: product keyed by UPC

Dimension rows are created lazily by the ingestion layer and never updated.
A SKU whose UPC is PSEUDO_UPC marks store-level totals that could not be
allocated to real SKUs for that week.
"""

from datetime import datetime, date
from typing import Optional, List

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Pseudo-SKU used when a store's totals cannot be allocated to real SKUs
PSEUDO_UPC = "ALL"
PSEUDO_SKU_NAME = "All SKUs"

# Reserved store code for chain-wide aggregate rows. SKU totals are never
# stored against it: they are always allocated to real stores first.
ALL_STORES_CODE = "ULTA-ALL"


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class Week(Base):
    """
    Week Dimension Table

    One row per ISO week that has (or had) sales facts. `year` is the
    calendar year of the Monday that opens the week.
    """
    __tablename__ = "weeks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    iso: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)  # e.g. 2025-W32
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    sales: Mapped[List["SalesFact"]] = relationship(back_populates="week")

    __table_args__ = (
        Index("ix_weeks_start_date", "start_date"),
    )


class Store(Base):
    """
    Store Dimension Table

    `code` is the retailer's store number kept verbatim (leading zeros
    included).
    """
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    sales: Mapped[List["SalesFact"]] = relationship(back_populates="store")


class Sku(Base):
    """
    SKU Dimension Table

    `upc` is a digits-only product code, or PSEUDO_UPC for the
    degraded-allocation marker.
    """
    __tablename__ = "skus"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upc: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    sales: Mapped[List["SalesFact"]] = relationship(back_populates="sku")


# =============================================================================
# FACT TABLES
# =============================================================================

class SalesFact(Base):
    """
    Weekly Sales Fact Table

    Grain: one row per (week, store, SKU). The unique constraint backs the
    ingestion layer's at-most-once guarantee.
    """
    __tablename__ = "sales_facts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Dimension foreign keys
    week_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weeks.id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stores.id"), nullable=False
    )
    sku_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("skus.id"), nullable=False
    )

    # Measures
    units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revenue: Mapped[float] = mapped_column(
        Numeric(18, 6, asdecimal=False), nullable=False, default=0
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    # Relationships
    week: Mapped["Week"] = relationship(back_populates="sales")
    store: Mapped["Store"] = relationship(back_populates="sales")
    sku: Mapped["Sku"] = relationship(back_populates="sales")

    __table_args__ = (
        UniqueConstraint("week_id", "store_id", "sku_id", name="uq_sales_facts_week_store_sku"),
        Index("ix_sales_facts_store", "store_id"),
        Index("ix_sales_facts_sku", "sku_id"),
    )
