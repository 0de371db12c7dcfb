"""
FastAPI Application

Main entry point for the Retail Sales Analytics ingestion API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from retail_analytics.config import get_settings
from retail_analytics.config.logging import configure_logging
from retail_analytics.database.connection import close_database, create_tables, init_database
from retail_analytics.serving.api.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from retail_analytics.serving.api.routes import (
    admin_router,
    data_health_router,
    health_router,
    ingest_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Retail Sales Analytics API", environment=settings.app_env)

    await init_database()
    if not settings.is_production:
        # Production schemas are managed out of band
        await create_tables()

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Retail Sales Analytics API",
    description="Weekly store/SKU sales ingestion and data health",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(ingest_router, prefix="/api/v1/ingest", tags=["Ingestion"])
app.include_router(data_health_router, prefix="/api/v1", tags=["Data Health"])
app.include_router(admin_router, prefix="/api/v1/test", tags=["Test Support"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Retail Sales Analytics API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
