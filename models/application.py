# models/application.py

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field

from .enums import ApplicationStatus
from .requests import NonBlank


class ApplicationCreate(BaseModel):
    """Residence application filled in by a newbie."""
    full_name: NonBlank
    email: EmailStr
    phone: Optional[str] = None
    place_of_study: NonBlank
    accommodation_type: NonBlank
    location: NonBlank


class CommunicationEntry(BaseModel):
    message: str
    sent_by: str
    status: Optional[ApplicationStatus] = None
    admin_id: Optional[str] = None
    timestamp: datetime


class ApplicationRead(ApplicationCreate):
    id: str
    applicant_id: str
    status: ApplicationStatus
    room_number: Optional[str] = None
    tenant_code: Optional[str] = None
    communication_log: List[CommunicationEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "extra": "ignore"}


class ApplicationDecision(BaseModel):
    decision: Literal["accept", "deny"]
    message: NonBlank
    room_number: Optional[str] = Field(None, description="Room allocated on acceptance")
    tenant_code: Optional[str] = Field(None, description="Tenant code issued on acceptance")


class ApplicationMessage(BaseModel):
    message: NonBlank
