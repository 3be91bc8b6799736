# routers/analytics.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from datetime import date

from core import analytics
from core.cache import cache_get, cache_set, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from core.utils import first_of_year, parse_iso_date
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard


router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"],
)


def _between(query, column: str, start: str, end: str):
    if query is None:
        return None
    return query.gte(column, start).lte(column, end)


def build_analytics(guard: ScopedQueryGuard, start: date, end: date, today: date) -> dict:
    start_s = start.isoformat()
    end_s = end.isoformat()
    # timestamps: include the whole end day
    end_ts = f"{end_s}T23:59:59.999999"
    year_start = first_of_year(today).isoformat()
    label = analytics.range_label(start, end)

    # Step 1: apartment ids of the scoped buildings (one query)
    apartment_ids = guard.apartment_ids()

    # Step 2: occupancy works off buildings directly
    buildings = guard.fetch(guard.by_building("buildings", "id, name, total_apartments", column="id"))
    apartments = guard.fetch(guard.by_building("apartments", "id, building_id, is_occupied"))
    occupancy = analytics.occupancy_by_building(buildings, apartments)

    if not apartment_ids:
        return {
            "range": {"start": start_s, "end": end_s},
            "months": analytics.month_range(start, end),
            "revenue": [],
            "occupancy": occupancy,
            "maintenance": [],
            "payments": [],
            "tenants": analytics.empty_tenant_summary(),
        }

    # Step 3: payments / expenses / requests in range
    payments = guard.fetch(_between(
        guard.by_apartment("payments", "amount, status, paid_date, due_date"),
        "due_date", start_s, end_s,
    ))
    expenses = guard.fetch(_between(
        guard.by_building("expenses", "amount"),
        "date", start_s, end_s,
    ))
    requests = guard.fetch(_between(
        guard.by_apartment("maintenance_requests", "status, estimated_cost"),
        "created_at", start_s, end_ts,
    ))

    revenue = analytics.sum_amounts(payments, "completed")
    expense_total = analytics.sum_amounts(expenses)

    # Step 4: tenants + this-year activity for the satisfaction score
    tenants = guard.fetch(guard.by_apartment("tenants", "created_at, lease_start_date"))

    year_payments = guard.by_apartment("payments", "amount, status")
    if year_payments is not None:
        year_payments = year_payments.gte("due_date", year_start)
    year_requests = guard.by_apartment("maintenance_requests", "status")
    if year_requests is not None:
        year_requests = year_requests.gte("created_at", year_start)

    tenant_data = analytics.tenant_summary(
        tenants,
        guard.fetch(year_payments),
        guard.fetch(year_requests),
        today,
    )

    logger.debug(
        f"Analytics {label} for {guard.scope.principal_id}: apartments={len(apartment_ids)} "
        f"payments={len(payments)} requests={len(requests)} tenants={len(tenants)}"
    )

    return {
        "range": {"start": start_s, "end": end_s},
        "months": analytics.month_range(start, end),
        "revenue": [{
            "month": label,
            "revenue": revenue,
            "expenses": expense_total,
            "profit": revenue - expense_total,
        }],
        "occupancy": occupancy,
        "maintenance": [{"month": label, **analytics.maintenance_summary(requests)}],
        "payments": [{"month": label, **analytics.payment_summary(payments)}],
        "tenants": tenant_data,
    }


# ============================================================
# ANALYTICS
# ============================================================
@router.get(
    "",
    summary="Scoped analytics",
    description="""
    Revenue, occupancy, maintenance, payment and tenant aggregates for the
    caller's active building scope.

    **Query Parameters:**
    - `start`: YYYY-MM-DD (default: Jan 1 of the current year)
    - `end`: YYYY-MM-DD (default: today)
    """,
    dependencies=[Depends(requires_permission("analytics:read"))],
)
def get_analytics(
    start: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    today = date.today()
    try:
        start_date = parse_iso_date(start) or first_of_year(today)
        end_date = parse_iso_date(end) or today
    except ValueError:
        raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD.")

    if start_date > end_date:
        raise HTTPException(400, "start must be on or before end")

    cache_key = view_cache_key(current_user.id, "analytics", guard.scope.selection, start_date, end_date)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        data = build_analytics(guard, start_date, end_date, today)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch analytics data", 500)

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result
