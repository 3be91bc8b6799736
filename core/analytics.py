# core/analytics.py

"""
Aggregation math for the analytics and dashboard views.

Functions here take rows already fetched through the scoped query guard
and never touch Supabase themselves.
"""

from datetime import date
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from core.utils import parse_iso_date, to_number

# Satisfaction score weights
BASE_SCORE = 3.0
COLLECTION_WEIGHT = 1.5
MAINTENANCE_WEIGHT = 1.0
MIN_SCORE = 1.0
MAX_SCORE = 5.0

DAYS_PER_MONTH = 30
NEW_TENANT_MONTHS = 6


def month_range(start: date, end: date) -> List[str]:
    """YYYY-MM keys from start's month through end's month, inclusive."""
    months = []
    current = start.replace(day=1)
    while current <= end:
        months.append(current.strftime("%Y-%m"))
        current += relativedelta(months=1)
    return months


def range_label(start: date, end: date) -> str:
    return f"{start.isoformat()} to {end.isoformat()}"


def sum_amounts(rows: Iterable[dict], status: Optional[str] = None, field: str = "amount") -> float:
    return sum(
        to_number(row.get(field))
        for row in rows
        if status is None or row.get("status") == status
    )


def rate(part: float, whole: float, default: float = 0.0) -> float:
    return part / whole if whole > 0 else default


# ============================================================
# Payments
# ============================================================
def payment_summary(payments: List[dict]) -> dict:
    total = sum_amounts(payments)
    collected = sum_amounts(payments, "completed")
    overdue = sum_amounts(payments, "overdue")
    return {
        "total_amount": total,
        "collected_amount": collected,
        "overdue_amount": overdue,
        "collection_rate": rate(collected, total) * 100,
    }


# ============================================================
# Maintenance
# ============================================================
def maintenance_summary(requests: List[dict]) -> dict:
    total = len(requests)
    completed = len([r for r in requests if r.get("status") == "completed"])
    total_cost = sum_amounts(requests, field="estimated_cost")
    return {
        "total_requests": total,
        "completed_requests": completed,
        "total_cost": total_cost,
        "avg_cost": rate(total_cost, total),
    }


# ============================================================
# Occupancy
# ============================================================
def occupancy_by_building(buildings: List[dict], apartments: List[dict]) -> List[dict]:
    counts = {}
    for apt in apartments:
        bid = apt.get("building_id")
        total, occupied = counts.get(bid, (0, 0))
        counts[bid] = (total + 1, occupied + (1 if apt.get("is_occupied") else 0))

    output = []
    for building in buildings:
        listed, occupied = counts.get(building["id"], (0, 0))
        # buildings.total_apartments is authoritative when set
        total = building.get("total_apartments")
        total = int(total) if total is not None else listed
        output.append({
            "building_id": building["id"],
            "building_name": building.get("name"),
            "total_apartments": total,
            "occupied_apartments": occupied,
            "occupancy_rate": rate(occupied, total) * 100,
        })
    return output


# ============================================================
# Tenants
# ============================================================
def count_new_tenants(tenants: List[dict], today: date, months: int = NEW_TENANT_MONTHS) -> int:
    cutoff = today - relativedelta(months=months)
    count = 0
    for tenant in tenants:
        created = parse_iso_date(tenant.get("created_at"))
        if created is not None and created >= cutoff:
            count += 1
    return count


def average_tenancy_months(tenants: List[dict], today: date) -> float:
    """Mean months (30-day) since lease start; tenants without a lease start are skipped."""
    durations = []
    for tenant in tenants:
        start = parse_iso_date(tenant.get("lease_start_date"))
        if start is None:
            continue
        durations.append((today - start).days / DAYS_PER_MONTH)
    return rate(sum(durations), len(durations))


def satisfaction_score(
    collection_rate: float,
    maintenance_completion_rate: float,
    avg_tenancy_months: float,
    overdue_rate: float,
) -> float:
    """
    Heuristic score from 1.0 to 5.0. Rates are fractions (0 to 1), not percents.
    """
    score = BASE_SCORE
    score += collection_rate * COLLECTION_WEIGHT
    score += maintenance_completion_rate * MAINTENANCE_WEIGHT

    if avg_tenancy_months > 12:
        score += 0.5
    elif avg_tenancy_months > 6:
        score += 0.3

    if overdue_rate > 0.2:
        score -= 0.5
    elif overdue_rate > 0.1:
        score -= 0.3

    score = max(MIN_SCORE, min(MAX_SCORE, score))
    return round(score, 1)


def tenant_summary(
    tenants: List[dict],
    year_payments: List[dict],
    year_requests: List[dict],
    today: date,
) -> dict:
    avg_months = average_tenancy_months(tenants, today)

    total_paid = sum_amounts(year_payments)
    collection = rate(sum_amounts(year_payments, "completed"), total_paid)
    overdue = rate(sum_amounts(year_payments, "overdue"), total_paid)

    completed_requests = len([r for r in year_requests if r.get("status") == "completed"])
    completion = rate(completed_requests, len(year_requests), default=1.0)

    return {
        "total_tenants": len(tenants),
        "new_tenants": count_new_tenants(tenants, today),
        "avg_tenancy_duration": avg_months,
        "satisfaction_score": satisfaction_score(collection, completion, avg_months, overdue),
    }


def empty_tenant_summary() -> dict:
    return {
        "total_tenants": 0,
        "new_tenants": 0,
        "avg_tenancy_duration": 0,
        "satisfaction_score": 0,
    }


# ============================================================
# Tenant self-service dashboard
# ============================================================
def tenant_dashboard_stats(payments: List[dict], requests: List[dict], today: date) -> dict:
    """
    Counts over one tenancy's own payments and its apartment's requests.
    A pending payment awaiting review is not counted as pending.
    """
    overdue = 0
    for payment in payments:
        due = parse_iso_date(payment.get("due_date"))
        if payment.get("status") == "pending" and due is not None and due < today:
            overdue += 1

    return {
        "total_payments": len(payments),
        "pending_payments": len([
            p for p in payments
            if p.get("status") == "pending" and p.get("submission_status") != "pending"
        ]),
        "awaiting_review": len([p for p in payments if p.get("submission_status") == "pending"]),
        "completed_payments": len([p for p in payments if p.get("status") == "completed"]),
        "overdue_payments": overdue,
        "total_maintenance_requests": len(requests),
        "pending_maintenance_requests": len([r for r in requests if r.get("status") == "pending"]),
        "completed_maintenance_requests": len([r for r in requests if r.get("status") == "completed"]),
    }
