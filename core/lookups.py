# core/lookups.py

"""
Batch lookups used to flatten scoped rows for the list views.
One query per related table (no N+1), keyed by id.
"""

from typing import Dict, Iterable, List


def _ids(values: Iterable) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


def apartment_map(client, apartment_ids: Iterable[str]) -> Dict[str, dict]:
    ids = _ids(apartment_ids)
    if not ids:
        return {}
    rows = (
        client.table("apartments")
        .select("id, building_id, unit_number, floor, monthly_rent")
        .in_("id", ids)
        .execute()
    ).data or []
    return {row["id"]: row for row in rows}


def profile_map(client, user_ids: Iterable[str]) -> Dict[str, dict]:
    ids = _ids(user_ids)
    if not ids:
        return {}
    rows = (
        client.table("user_profiles")
        .select("id, first_name, last_name, email")
        .in_("id", ids)
        .execute()
    ).data or []
    return {row["id"]: row for row in rows}


def tenant_names(client, tenant_ids: Iterable[str]) -> Dict[str, str]:
    """tenant id → "First Last" via tenants.user_id → user_profiles."""
    ids = _ids(tenant_ids)
    if not ids:
        return {}
    tenants = (
        client.table("tenants")
        .select("id, user_id")
        .in_("id", ids)
        .execute()
    ).data or []
    profiles = profile_map(client, [t.get("user_id") for t in tenants])

    names = {}
    for tenant in tenants:
        profile = profiles.get(tenant.get("user_id"))
        if profile:
            names[tenant["id"]] = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return names
