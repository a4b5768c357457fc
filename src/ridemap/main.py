"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.deps import get_store
from .api.routes import health, planning, routes
from .config import settings
from .persistence.store import JsonFileRouteStore

logger = logging.getLogger(__name__)


def migrate_legacy_routes() -> int:
    """Move routes from the legacy flat file into the file store, once."""
    if settings.legacy_routes_file is None:
        return 0
    store = get_store()
    if not isinstance(store, JsonFileRouteStore):
        logger.warning(
            f"Legacy routes file configured but storage backend is '{settings.storage_backend}', migration skipped"
        )
        return 0
    return store.migrate_legacy_file(settings.legacy_routes_file)


@asynccontextmanager
async def lifespan(app: FastAPI):
    migrate_legacy_routes()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(routes.router, prefix=settings.api_prefix)
    app.include_router(planning.router, prefix=settings.api_prefix)
    return app


app = create_app()
