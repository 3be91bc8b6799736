# core/supabase_client.py

from supabase import create_client, Client
from core.config import settings
from core.logging_config import logger


# ============================================================
# Supabase Client Factory (service role)
# ============================================================

def get_supabase_client() -> Client:
    """
    Creates a Supabase client using the SERVICE ROLE KEY.

    The service role bypasses row-level security, so every read of
    tenant data must go through core.scoped_query.
    """
    try:
        supabase_url = settings.SUPABASE_URL
        supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY

        if not supabase_url or not supabase_key:
            logger.error("Missing Supabase credentials")
            logger.error(f"   URL: {supabase_url}")
            logger.error(f"   SERVICE ROLE KEY: {'SET' if supabase_key else 'MISSING'}")
            return None

        return create_client(supabase_url, supabase_key)

    except Exception as e:
        logger.error(f"Supabase Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Ping Supabase for health checks
# ============================================================

HEALTH_TABLES = [
    "buildings",
    "apartments",
    "tenants",
    "payments",
    "maintenance_requests",
    "admin_building_access",
]


def ping_supabase() -> dict:
    """
    Simple connectivity check: one-row select per core table.
    """
    client = get_supabase_client()
    if client is None:
        return {"service": "Supabase", "status": "not_configured"}

    results = {}
    overall = "ok"

    for t in HEALTH_TABLES:
        try:
            res = client.table(t).select("*").limit(1).execute()
            results[t] = {
                "status": "ok",
                "rows_found": len(res.data or []),
            }
        except Exception as err:
            overall = "degraded"
            results[t] = {"status": "error", "detail": str(err)}

    return {
        "service": "Supabase",
        "status": overall,
        "tables": results,
    }
