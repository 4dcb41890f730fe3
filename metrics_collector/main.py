"""
Metrics Collector - FastAPI Application

Main entry point for the collector HTTP server.

Usage:
    metrics-collector [-a ADDRESS] [-i STORE_INTERVAL] [-f FILE_STORAGE_PATH]
                      [-r RESTORE] [-d DATABASE_DSN] [-k KEY]
"""

import argparse
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from metrics_common.integrity import IntegrityGuard
from metrics_common.log import configure_logging

from .config import Settings
from .routers import metrics, system
from .services import MetricIngestor, PersistenceService
from .storage import MetricStore, open_store

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


def create_app(settings: Optional[Settings] = None, store: Optional[MetricStore] = None) -> FastAPI:
    """Build the collector app.

    A pre-built ``store`` is used as-is (and left open at shutdown);
    otherwise one is opened from ``settings`` during startup.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info(
            "Starting metrics collector",
            version=VERSION,
            address=settings.address,
            backend=settings.backend.value,
        )

        owned = store is None
        app.state.store = await open_store(settings) if owned else store
        app.state.ingestor = MetricIngestor(app.state.store, settings.batch_apply_policy)
        app.state.persistence = PersistenceService(app.state.store, settings.store_interval)
        await app.state.persistence.start()

        yield

        # Shutdown
        logger.info("Shutting down metrics collector")
        await app.state.persistence.stop()
        if owned:
            await app.state.store.close()

    app = FastAPI(
        title="Metrics Collector",
        description="Receives gauge and counter updates from metric agents",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.guard = IntegrityGuard(settings.signing_key)

    app.add_middleware(GZipMiddleware, minimum_size=0)

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests."""
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
            client=request.client.host if request.client else "unknown",
        )

        return response

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    app.include_router(metrics.router, tags=["Metrics"])
    app.include_router(system.router, tags=["System"])

    return app


def parse_flags(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Parse command-line flags into settings overrides (unset flags omitted)."""
    parser = argparse.ArgumentParser(description="Metrics collector server")
    parser.add_argument("-a", dest="address", help="Listen address host:port")
    parser.add_argument("-i", dest="store_interval", type=int, help="Seconds between saves (0 = save every update)")
    parser.add_argument("-f", dest="file_storage_path", help="Path of the JSON snapshot file")
    parser.add_argument("-r", dest="restore", help="Load the snapshot at startup (true/false)")
    parser.add_argument("-d", dest="database_dsn", help="Database path; selects the relational backend")
    parser.add_argument("-k", dest="key", help="HMAC-SHA256 signing key")
    args = parser.parse_args(argv)

    return {name: value for name, value in vars(args).items() if value is not None}


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    settings = Settings(**parse_flags(argv))
    configure_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
