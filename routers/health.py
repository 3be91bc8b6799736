# routers/health.py

from fastapi import APIRouter, Request
from core.supabase_client import ping_supabase

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# -----------------------------------------------------
# GET /health/db
# Checks Supabase connection + table queries
# No auth required
# -----------------------------------------------------
@router.get("/db", summary="Supabase / DB health check")
def health_db():
    """
    Verifies Supabase connectivity: one-row select per core table.
    Safe for external health monitors (no auth required).
    """
    status = ping_supabase()
    return {
        "service": "Supabase",
        "status": status.get("status", "unknown"),
        "details": status,
    }


# -----------------------------------------------------
# GET /health/app
# -----------------------------------------------------
@router.get("/app", summary="App health check")
async def health_app(request: Request):
    """
    Lightweight liveness check. Reports how many scope sessions are live.
    """
    registry = getattr(request.app.state, "scope_registry", None)
    return {
        "service": "Property Scope API",
        "status": "ok",
        "scope_sessions": registry.session_count() if registry is not None else 0,
    }
