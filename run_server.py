#!/usr/bin/env python
"""
API Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py --workers 4
"""

import argparse

import uvicorn

from retail_analytics.config import get_settings


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        "retail_analytics.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["retail_analytics"],
        log_level="debug",
    )


def run_prod_server(host: str, port: int, workers: int):
    """Run with multiple Uvicorn workers behind a proxy."""
    uvicorn.run(
        "retail_analytics.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level=get_settings().monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Retail Sales Analytics API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    parser.add_argument("--workers", type=int, default=1, help="Uvicorn worker processes")
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.port)
    else:
        run_prod_server(settings.api_host, args.port, args.workers)
