"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from trias_server.routes.assessment import router as assessment_router
from trias_server.routes.catalog import router as catalog_router
from trias_server.routes.results import router as results_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(catalog_router, prefix=API_PREFIX)
    app.include_router(assessment_router, prefix=API_PREFIX)
    app.include_router(results_router, prefix=API_PREFIX)
