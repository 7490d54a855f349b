"""FastAPI application factory for a standalone permission service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ..__version__ import __version__
from ..config import PermissionSettings, setup_logging
from ..engine import PermissionEngine, build_permission_engine
from ..features.permissions.routers import (
    get_invalidation_coordinator,
    get_permission_resolver,
    permission_router,
)
from .exception_handlers import register_exception_handlers


def create_app(
    engine: Optional[PermissionEngine] = None,
    settings: Optional[PermissionSettings] = None,
    manage_lifecycle: bool = True
) -> FastAPI:
    """Create the permission service app.

    When ``engine`` is omitted one is built from ``settings``. With
    ``manage_lifecycle`` the engine is started and stopped with the app.
    """
    engine = engine or build_permission_engine(settings)
    setup_logging(engine.settings.log_level, engine.settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await engine.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await engine.stop()

    app = FastAPI(
        title="neo-permissions",
        version=__version__,
        description="Tenant-scoped permission resolution service",
        lifespan=lifespan,
    )
    app.state.permission_engine = engine

    app.dependency_overrides[get_permission_resolver] = lambda: engine.resolver
    app.dependency_overrides[get_invalidation_coordinator] = lambda: engine.coordinator

    register_exception_handlers(app)
    app.include_router(permission_router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "cache": await engine.cache.health_check()}

    @app.get("/stats", tags=["Health"])
    async def stats():
        return engine.stats()

    return app
