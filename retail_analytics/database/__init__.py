"""
Database Module
"""
from .connection import init_database, close_database, create_tables, get_db, get_db_dependency
from .models import Base, Week, Store, Sku, SalesFact, PSEUDO_UPC, ALL_STORES_CODE

__all__ = [
    "init_database",
    "close_database",
    "create_tables",
    "get_db",
    "get_db_dependency",
    "Base",
    "Week",
    "Store",
    "Sku",
    "SalesFact",
    "PSEUDO_UPC",
    "ALL_STORES_CODE",
]
