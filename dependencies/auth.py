from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.logging_config import logger
from core.permissions import ROLE_PERMISSIONS
from core.supabase_client import get_supabase_client
from models.enums import Role
from models.user import Actor


bearer_scheme = HTTPBearer()

INVALID_TOKEN = "Invalid or expired authentication token"


# ============================================================
# Resident / staff identity
# ============================================================
class CurrentUser(Actor):
    email: str

    # profile fields kept in Supabase user_metadata
    phone: Optional[str] = None
    room_number: Optional[str] = None
    tenant_code: Optional[str] = None
    place_of_study: Optional[str] = None


def user_from_auth(auth_user) -> CurrentUser:
    """Build the portal identity from a Supabase Auth user."""
    metadata = auth_user.user_metadata or {}

    # accounts without a known role are applicants
    role = metadata.get("role") or Role.newbie.value
    if role not in ROLE_PERMISSIONS:
        logger.warning(f"User {auth_user.id} has unknown role '{role}', treating as newbie")
        role = Role.newbie.value

    overrides = metadata.get("permissions")
    if not isinstance(overrides, list):
        overrides = []

    return CurrentUser(
        id=auth_user.id,
        email=auth_user.email,
        role=role,
        permissions=overrides,
        **{
            field: metadata.get(field)
            for field in ("full_name", "phone", "room_number", "tenant_code", "place_of_study")
        },
    )


# ============================================================
# Bearer token → CurrentUser (validated by Supabase GoTrue)
# ============================================================
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    def rejected():
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_TOKEN,
            headers={"WWW-Authenticate": "Bearer"},
        )

    client = get_supabase_client()
    if client is None:
        raise HTTPException(500, "Authentication backend not configured")

    try:
        response = client.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.debug(f"Token rejected by Supabase: {e}")
        raise rejected()

    auth_user = getattr(response, "user", None)
    if auth_user is None or not auth_user.email:
        raise rejected()

    return user_from_auth(auth_user)
