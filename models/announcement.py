# models/announcement.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from .enums import AnnouncementStatus
from .requests import NonBlank


class AnnouncementBase(BaseModel):
    title: NonBlank
    content: NonBlank
    expires_at: Optional[datetime] = None

    # -------------------------------------------------
    # Normalize timestamps like "2025-01-01T00:00:00Z"
    # -------------------------------------------------
    @field_validator("expires_at", mode="before")
    def parse_expires_at(cls, v):
        if isinstance(v, str) and v.endswith("Z"):
            return v.replace("Z", "+00:00")
        return v


class AnnouncementCreate(AnnouncementBase):
    pass


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    expires_at: Optional[datetime] = None
    status: Optional[AnnouncementStatus] = None


class AnnouncementRead(AnnouncementBase):
    id: str
    status: AnnouncementStatus
    created_by: str
    created_by_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "extra": "ignore"}
