from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# REQUEST KIND
# -----------------------------------------------------
class RequestKind(BaseStrEnum):
    """Category of a student-submitted request."""

    guest = "guest"
    sleepover = "sleepover"
    maintenance = "maintenance"
    complaint = "complaint"


# -----------------------------------------------------
# STATUSES (one vocabulary per kind)
# -----------------------------------------------------
class GuestStatus(BaseStrEnum):
    """Day guest signed in at the gate."""

    active = "active"
    checked_out = "checked-out"
    declined = "declined"


class SleepoverStatus(BaseStrEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    checked_out = "checked-out"


class MaintenanceStatus(BaseStrEnum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    rejected = "rejected"


class ComplaintStatus(BaseStrEnum):
    pending = "pending"
    in_progress = "in_progress"
    resolved = "resolved"
    rejected = "rejected"


class ApplicationStatus(BaseStrEnum):
    pending = "pending"
    accepted = "accepted"
    denied = "denied"


# -----------------------------------------------------
# ACTIONS
# -----------------------------------------------------
class Action(BaseStrEnum):
    """Verbs an actor can apply to a request."""

    approve = "approve"
    reject = "reject"
    start = "start"
    complete = "complete"
    resolve = "resolve"
    checkout = "checkout"
    decline = "decline"


# -----------------------------------------------------
# ROLES
# -----------------------------------------------------
class Role(BaseStrEnum):
    super_admin = "super_admin"
    admin = "admin"
    security = "security"
    student = "student"
    newbie = "newbie"  # applicant, not yet accepted


# -----------------------------------------------------
# PAYLOAD CATEGORIES
# -----------------------------------------------------
class MaintenanceCategory(BaseStrEnum):
    bedroom = "bedroom"
    bathroom = "bathroom"
    kitchen = "kitchen"
    furniture = "furniture"
    other = "other"


class MaintenancePriority(BaseStrEnum):
    low = "low"
    medium = "medium"
    high = "high"


class ComplaintCategory(BaseStrEnum):
    maintenance = "maintenance"
    security = "security"
    noise = "noise"
    cleanliness = "cleanliness"
    other = "other"


# -----------------------------------------------------
# NOTIFICATION KIND
# -----------------------------------------------------
class NotificationKind(BaseStrEnum):
    guest = "guest"
    sleepover = "sleepover"
    maintenance = "maintenance"
    complaint = "complaint"
    application = "application"
    message = "message"


# -----------------------------------------------------
# ANALYTICS
# -----------------------------------------------------
class TimeUnit(BaseStrEnum):
    """Bucket size of the dashboard time series."""

    days = "days"
    weeks = "weeks"
    months = "months"


class AnnouncementStatus(BaseStrEnum):
    active = "active"
    inactive = "inactive"
