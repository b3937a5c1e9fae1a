# models/requests.py

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, StringConstraints, TypeAdapter, field_validator

from .enums import (
    ComplaintCategory,
    ComplaintStatus,
    GuestStatus,
    MaintenanceCategory,
    MaintenancePriority,
    MaintenanceStatus,
    RequestKind,
    SleepoverStatus,
)


NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# -------------------------------------------------
# Companions listed on a guest / sleepover form
# -------------------------------------------------
class GuestCompanion(BaseModel):
    first_name: NonBlank
    last_name: NonBlank
    phone_number: Optional[str] = None


class SleepoverCompanion(BaseModel):
    name: NonBlank
    surname: NonBlank
    phone_number: Optional[str] = None


# -------------------------------------------------
# Submission payloads (what the student fills in)
# -------------------------------------------------
class GuestVisitCreate(BaseModel):
    """Day guest signed in at the gate."""
    first_name: NonBlank
    last_name: NonBlank
    phone_number: NonBlank
    room_number: NonBlank
    purpose: NonBlank
    from_date: date
    additional_guests: List[GuestCompanion] = Field(default_factory=list)


class SleepoverRequestCreate(BaseModel):
    """Overnight guest, needs admin approval."""
    guest_name: NonBlank
    guest_surname: NonBlank
    guest_phone: NonBlank
    room_number: NonBlank
    tenant_code: Optional[str] = None
    additional_guests: List[SleepoverCompanion] = Field(default_factory=list)
    start_date: date
    end_date: date

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v, info):
        start = info.data.get("start_date")
        if start is not None and v < start:
            raise ValueError("end_date must be on or after start_date")
        return v


class MaintenanceTicketCreate(BaseModel):
    title: NonBlank
    category: MaintenanceCategory
    description: NonBlank
    room_number: NonBlank
    time_slot: Optional[str] = None
    preferred_date: Optional[date] = None
    priority: MaintenancePriority = MaintenancePriority.medium


class ComplaintCreate(BaseModel):
    title: NonBlank
    description: NonBlank
    category: ComplaintCategory
    location: Optional[str] = None


# -------------------------------------------------
# Stored records
# -------------------------------------------------
class RequestRecord(BaseModel):
    """Fields shared by every request kind."""
    id: str
    requester_id: str
    created_at: datetime
    updated_at: datetime
    admin_response: Optional[str] = None
    is_active: bool = False

    model_config = {"from_attributes": True, "extra": "ignore"}


class GuestVisit(RequestRecord, GuestVisitCreate):
    kind: Literal["guest"] = "guest"
    status: GuestStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None


class SleepoverRequest(RequestRecord, SleepoverRequestCreate):
    kind: Literal["sleepover"] = "sleepover"
    status: SleepoverStatus
    security_code: Optional[str] = None
    check_in_time: Optional[datetime] = None
    sign_out_time: Optional[datetime] = None


class MaintenanceTicket(RequestRecord, MaintenanceTicketCreate):
    kind: Literal["maintenance"] = "maintenance"
    status: MaintenanceStatus
    assigned_staff_id: Optional[str] = None


class Complaint(RequestRecord, ComplaintCreate):
    kind: Literal["complaint"] = "complaint"
    status: ComplaintStatus
    assigned_staff_id: Optional[str] = None


AnyRequest = Annotated[
    Union[GuestVisit, SleepoverRequest, MaintenanceTicket, Complaint],
    Field(discriminator="kind"),
]

request_adapter = TypeAdapter(AnyRequest)


CREATE_MODELS = {
    RequestKind.guest: GuestVisitCreate,
    RequestKind.sleepover: SleepoverRequestCreate,
    RequestKind.maintenance: MaintenanceTicketCreate,
    RequestKind.complaint: ComplaintCreate,
}


# -------------------------------------------------
# Transition body (admin / security action)
# -------------------------------------------------
class TransitionBody(BaseModel):
    response: Optional[str] = Field(None, description="Message shown to the student")
    code: Optional[str] = Field(None, description="Checkout PIN or sleepover security code")


class StaffAssignment(BaseModel):
    staff_id: NonBlank = Field(..., description="Staff member taking the ticket")


class CheckoutPinUpdate(BaseModel):
    pin: str = Field(..., description="New shared guest checkout PIN")
