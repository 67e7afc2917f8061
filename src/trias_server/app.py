"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that builds the synchronizer and the engine registry
  - CORS middleware
  - Exception handlers (AssessmentError reason → HTTP status)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness checks

The ``cli()`` function is the ``trias-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trias_assessment.errors import AssessmentError
from trias_assessment.interfaces import RemoteSynchronizer
from trias_db.engine import dispose_engine
from trias_db.synchronizer import SqlSynchronizer

from trias_server.config import ServerSettings, load_settings
from trias_server.errors import assessment_error_handler, generic_error_handler
from trias_server.registry import EngineRegistry
from trias_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Use the injected synchronizer, or build a ``SqlSynchronizer``
      2. Build the ``EngineRegistry`` and stash it on ``app.state``
      3. Warm the shared catalog (a failure here is retried per request)

    Shutdown:
      1. Wait for pending background upserts
      2. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings
    synchronizer: RemoteSynchronizer = app.state.synchronizer or SqlSynchronizer()

    registry = EngineRegistry(
        synchronizer, cache_dir=settings.cache_dir, max_engines=settings.max_engines,
    )
    app.state.registry = registry

    try:
        await registry.catalog()
    except AssessmentError as exc:
        logger.warning("Catalog not available at startup: %s", exc.message)

    yield

    # --- Shutdown ---
    await registry.close()
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(
    settings: ServerSettings | None = None,
    *,
    synchronizer: RemoteSynchronizer | None = None,
) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Trias Assessment API",
        description="REST API for the Likert-scale assessment engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Read by the lifespan handler
    app.state.settings = settings
    app.state.synchronizer = synchronizer

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(AssessmentError, assessment_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness check: verifies the remote store serves a catalog."""
        try:
            catalog = await app.state.registry.catalog()
            return {"status": "ok", "themes": len(catalog.themes)}
        except AssessmentError as exc:
            logger.error("Health check failed: %s", exc.message)
            return {"status": "error", "reason": exc.reason.value}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn trias_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``trias-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "trias_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
