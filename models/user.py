# models/user.py

from typing import List, Optional
from pydantic import BaseModel, Field

from .enums import Role


# ===============================================================
# ACTOR - who is performing an operation
# ===============================================================

class Actor(BaseModel):
    """
    Identity handed to the lifecycle engine. Supplied by the
    authentication layer (see dependencies.auth.CurrentUser).
    """
    id: str
    role: Role
    full_name: Optional[str] = None

    # per-user permission overrides from user_metadata["permissions"]
    permissions: List[str] = Field(default_factory=list)
