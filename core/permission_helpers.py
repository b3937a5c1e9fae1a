from fastapi import Depends, HTTPException

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import role_has_permission


# -----------------------------------------------------
# Permission evaluation
# -----------------------------------------------------
def has_permission(user: CurrentUser, permission: str) -> bool:
    return role_has_permission(str(user.role), permission, user.permissions)


# -----------------------------------------------------
# FastAPI dependency wrapper
# -----------------------------------------------------
def requires_permission(permission: str):
    """
    Usage:
        @router.post("/", dependencies=[Depends(requires_permission("requests:review"))])
    """

    def dependency(current_user: CurrentUser = Depends(get_current_user)):
        if not has_permission(current_user, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions: '{permission}' required"
            )
        return current_user

    return dependency
