# ============================================
# CENTRALIZED ROLE → PERMISSIONS MAP
# ============================================
ROLE_PERMISSIONS = {

    # =====================================================
    # SUPER ADMIN - Full access to everything
    # =====================================================
    "super_admin": ["*"],

    # =====================================================
    # RESIDENCE ADMIN
    # =====================================================
    "admin": [
        # Request back-office
        "requests:read_all",
        "requests:review",

        # Onboarding
        "applications:read",
        "applications:review",

        # Announcements
        "announcements:read",
        "announcements:write",

        # Dashboard + gate codes
        "analytics:read",
        "codes:manage",

        "notifications:read",
    ],

    # =====================================================
    # SECURITY - gate staff, checks guests out
    # =====================================================
    "security": [
        "requests:read_all",
        "requests:checkout",
        "announcements:read",
        "notifications:read",
    ],

    # =====================================================
    # STUDENT - resident self-service
    # =====================================================
    "student": [
        "requests:submit",
        "requests:checkout",  # own guests only
        "announcements:read",
        "notifications:read",
    ],

    # =====================================================
    # NEWBIE - applicant awaiting a decision
    # =====================================================
    "newbie": [
        "applications:submit",
        "announcements:read",
        "notifications:read",
    ],
}


# Roles that act on other people's requests
STAFF_ROLES = {"super_admin", "admin", "security"}


def effective_permissions(role: str, overrides=None) -> set:
    """Role-based permissions plus per-user overrides."""
    if role == "super_admin":
        return {"*"}

    perms = set(ROLE_PERMISSIONS.get(role, []))
    if isinstance(overrides, list):
        perms |= set(overrides)
    return perms


def role_has_permission(role: str, permission: str, overrides=None) -> bool:
    effective = effective_permissions(role, overrides)

    # Wildcard grants everything
    if "*" in effective:
        return True

    return permission in effective
