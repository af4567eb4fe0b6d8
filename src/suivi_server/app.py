"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - a lifespan handler that builds the backend client, the tracker and the
    review service once
  - CORS middleware
  - global exception handlers (ValueError → 404/409/400,
    DataSourceError → 502)
  - all API routes mounted under ``/api/v1``
  - a ``/health`` endpoint for readiness checks

``cli()`` is the ``dossier-suivi-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from suivi_client.client import BackendClient
from suivi_db.engine import dispose_engine, get_engine
from suivi_engine.interfaces import CircuitSource, DataSourceError
from suivi_engine.review import ReviewService
from suivi_engine.store import CircuitStore
from suivi_engine.tracker import SuiviTracker

from suivi_server.config import ServerSettings, load_settings
from suivi_server.errors import (
    data_source_error_handler,
    generic_error_handler,
    value_error_handler,
)
from suivi_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build shared services at startup, release them on shutdown."""
    settings: ServerSettings = app.state.settings

    client = BackendClient(
        settings.backend_base_url,
        token=settings.backend_token,
        timeout=settings.backend_timeout,
    )

    circuits: CircuitSource = client
    if settings.circuit_dir:
        store = CircuitStore(settings.circuit_dir)
        store.load()
        circuits = store
        logger.info("Circuits served from %s", settings.circuit_dir)

    tracker = SuiviTracker(results=client, documents=client, circuits=circuits)
    app.state.client = client
    app.state.tracker = tracker
    app.state.reviews = ReviewService(tracker)

    yield

    await client.aclose()
    await dispose_engine()
    logger.info("Backend client closed, database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Dossier Suivi API",
        description="Exam attempts, lock workflow and circuit progress of driving-licence dossiers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(DataSourceError, data_source_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness check — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    register_routes(app)
    return app


# Module-level ASGI export (uvicorn suivi_server.app:app)
app = create_app()


def cli() -> None:
    """Console-script entry point: ``dossier-suivi-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "suivi_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
