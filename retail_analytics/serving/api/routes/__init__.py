"""
API Routes Module
"""
from .health import router as health_router
from .ingest import router as ingest_router
from .data_health import router as data_health_router
from .admin import router as admin_router

__all__ = [
    "health_router",
    "ingest_router",
    "data_health_router",
    "admin_router",
]
