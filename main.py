import os
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure local imports resolve
sys.path.append(os.path.dirname(__file__))

# Core
from core.config import settings
from core.logging_config import logger
from core.scope_registry import ScopeRegistry
from core.scope_store import SupabaseScopeStore
from core.supabase_client import get_supabase_client

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.scope import router as scope_router

from routers.buildings import router as buildings_router
from routers.apartments import router as apartments_router
from routers.tenants import router as tenants_router
from routers.payments import router as payments_router
from routers.maintenance import router as maintenance_router
from routers.dashboard import router as dashboard_router
from routers.analytics import router as analytics_router
from routers.community import router as community_router

from routers.health import router as health_router


def build_scope_store() -> SupabaseScopeStore:
    return SupabaseScopeStore(get_supabase_client())


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app(scope_registry: ScopeRegistry = None) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Property management API: building-scoped views over Supabase",
    )

    # One resolver per signed-in principal, owned by this app instance
    if scope_registry is None:
        scope_registry = ScopeRegistry.from_settings(build_scope_store)
    app.state.scope_registry = scope_registry

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup logging
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"Starting {settings.PROJECT_NAME} (env={settings.ENV})")
        if not settings.SCOPE_FALLBACK_ENABLED:
            logger.info("Building scope fallback disabled")
        elif settings.is_production:
            logger.warning("Building scope fallback is ENABLED in production")
        for route in app.routes:
            methods = ",".join(getattr(route, "methods", None) or [])
            logger.debug(f"{methods:10s} {getattr(route, 'path', '')}")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500, 503):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url}: {exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Auth + scope session
    app.include_router(auth_router)
    app.include_router(scope_router)

    # Scoped views
    app.include_router(buildings_router)
    app.include_router(apartments_router)
    app.include_router(tenants_router)
    app.include_router(payments_router)
    app.include_router(maintenance_router)
    app.include_router(dashboard_router)
    app.include_router(analytics_router)
    app.include_router(community_router)

    # Health
    app.include_router(health_router)

    return app


# Create the global FastAPI instance
app = create_app()
