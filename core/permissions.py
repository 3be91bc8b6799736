# ============================================
# CENTRALIZED ROLE → PERMISSIONS MAP
# ============================================
#
# Permissions decide which operations a role may call.
# Which buildings those operations see is decided by the
# building scope resolver (core/access_scope.py).

DEFAULT_ROLE = "tenant"
WILDCARD = "*"

# Roles held to their own tenancy inside the building scope
SELF_SCOPED_ROLES = {"tenant"}

ROLE_PERMISSIONS = {

    # =====================================================
    # SUPER ADMIN: every operation
    # =====================================================
    "super_admin": [
        WILDCARD,
    ],

    # =====================================================
    # BUILDING ADMIN
    # =====================================================
    "admin": [
        "scope:read",

        "buildings:read",
        "apartments:read",
        "tenants:read",

        "payments:read", "payments:write", "payments:approve",

        "maintenance:read", "maintenance:write", "maintenance:update",

        "community:read", "community:write", "community:pin",

        "dashboard:read",
        "analytics:read",
    ],

    # =====================================================
    # TENANT: self-service views of their own tenancy
    # =====================================================
    "tenant": [
        "scope:read",

        "buildings:read",

        "payments:read", "payments:write",

        "maintenance:read", "maintenance:write",

        "community:read", "community:write",

        "dashboard:self",
    ],
}
