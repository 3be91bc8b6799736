# routers/payments.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from datetime import datetime, timezone

from core.cache import cache_get, cache_set, invalidate_principal, view_cache_key
from core.config import settings
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.lookups import apartment_map, tenant_names
from core.permission_helpers import requires_permission
from core.scoped_query import ScopedQueryGuard
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scoped_guard
from models.enums import PaymentStatus, SubmissionStatus
from models.payment import PaymentCreate, PaymentReview


router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
)


# ============================================================
# LIST PAYMENTS
# ============================================================
@router.get(
    "",
    summary="List Payments",
    description="""
    Payments for apartments in the caller's active building scope,
    newest first.

    **Permissions:** Requires `payments:read` permission.
    """,
    dependencies=[Depends(requires_permission("payments:read"))],
)
def list_payments(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    status: Optional[PaymentStatus] = None,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    cache_key = view_cache_key(current_user.id, "payments", guard.scope.selection, limit, status)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    try:
        query = guard.by_apartment("payments")
        if query is not None:
            if status:
                query = query.eq("status", status.value)
            query = query.order("created_at", desc=True)
            if limit:
                query = query.limit(limit)

        rows = guard.fetch(query)

        apartments = apartment_map(guard.client, [r.get("apartment_id") for r in rows])
        names = tenant_names(guard.client, [r.get("tenant_id") for r in rows])
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch payments", 500)

    data = []
    for row in rows:
        apartment = apartments.get(row.get("apartment_id")) or {}
        data.append({
            **row,
            "tenant_name": names.get(row.get("tenant_id")) or "Unknown",
            "apartment": apartment.get("unit_number") or "Unknown",
        })

    result = {"success": True, "data": data}
    cache_set(cache_key, result, ttl_seconds=settings.SCOPE_CACHE_TTL_SECONDS)
    return result


# ============================================================
# RECORD PAYMENT
# ============================================================
@router.post(
    "",
    summary="Record Payment",
    description="""
    Admins record payments for any apartment in their building scope.

    Tenants submit payments for their own apartment only. A tenant
    submission is always stored as `pending` and waits for admin review
    (see PATCH /payments/{payment_id}).
    """,
    dependencies=[Depends(requires_permission("payments:write"))],
)
def create_payment(
    payload: PaymentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    try:
        in_scope = guard.contains_apartment(payload.apartment_id)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to verify apartment scope", 500)

    if not in_scope:
        raise HTTPException(403, f"Apartment '{payload.apartment_id}' is outside your building scope")

    data = sanitize(payload.model_dump())

    if guard.self_only:
        data.update({
            "tenant_id": guard.tenancy.tenant_id,
            "status": PaymentStatus.pending.value,
            "submission_status": SubmissionStatus.pending.value,
        })
    elif payload.status == PaymentStatus.completed and not data.get("paid_date"):
        data["paid_date"] = data["due_date"]

    try:
        res = guard.client.table("payments").insert(data).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create payment", 500)

    if not res.data:
        raise HTTPException(500, "Insert returned no data")

    invalidate_principal(current_user.id)
    logger.info(f"Payment recorded by {current_user.id} for apartment {payload.apartment_id} ({data['status']})")

    return {"success": True, "data": res.data[0]}


# ============================================================
# REVIEW A SUBMITTED PAYMENT
# ============================================================
@router.patch(
    "/{payment_id}",
    summary="Approve or reject a pending payment",
    description="""
    approved → status `completed` (paid_date defaults to today)
    rejected → status `failed`

    Only `pending` payments inside the caller's building scope can be
    reviewed.

    **Permissions:** Requires `payments:approve` permission.
    """,
    dependencies=[Depends(requires_permission("payments:approve"))],
)
def review_payment(
    payment_id: str,
    payload: PaymentReview,
    current_user: CurrentUser = Depends(get_current_user),
    guard: ScopedQueryGuard = Depends(get_scoped_guard),
):
    try:
        query = guard.by_apartment("payments")
        if query is not None:
            query = query.eq("id", payment_id).limit(1)
        rows = guard.fetch(query)
    except Exception as e:
        raise handle_supabase_error(e, "Failed to fetch payment", 500)

    if not rows:
        raise HTTPException(404, f"Payment '{payment_id}' not found")

    payment = rows[0]
    if payment.get("status") != PaymentStatus.pending.value:
        raise HTTPException(400, f"Only pending payments can be reviewed (status: {payment.get('status')})")

    now = datetime.now(timezone.utc)
    update_data = {
        "submission_status": payload.decision,
        "reviewed_by": current_user.id,
        "reviewed_at": now.isoformat(),
        "review_notes": payload.notes,
    }
    if payload.decision == SubmissionStatus.approved.value:
        update_data["status"] = PaymentStatus.completed.value
        update_data["paid_date"] = payment.get("paid_date") or now.date().isoformat()
    else:
        update_data["status"] = PaymentStatus.failed.value

    try:
        res = (
            guard.client.table("payments")
            .update(update_data)
            .eq("id", payment_id)
            .execute()
        )
    except Exception as e:
        raise handle_supabase_error(e, "Failed to review payment", 500)

    if not res.data:
        raise HTTPException(404, f"Payment '{payment_id}' not found")

    invalidate_principal(current_user.id)
    logger.info(f"Payment {payment_id} {payload.decision} by {current_user.id}")

    return {"success": True, "data": res.data[0]}
