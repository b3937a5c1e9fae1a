# -------------------------
# Enums
# -------------------------
from .enums import (
    Action,
    ApplicationStatus,
    ComplaintStatus,
    GuestStatus,
    MaintenanceStatus,
    NotificationKind,
    RequestKind,
    Role,
    SleepoverStatus,
    TimeUnit,
)

# -------------------------
# Request Models (tagged variants)
# -------------------------
from .requests import (
    AnyRequest,
    Complaint,
    ComplaintCreate,
    GuestVisit,
    GuestVisitCreate,
    MaintenanceTicket,
    MaintenanceTicketCreate,
    RequestRecord,
    SleepoverRequest,
    SleepoverRequestCreate,
    StaffAssignment,
    TransitionBody,
    request_adapter,
)

# -------------------------
# Identity
# -------------------------
from .user import Actor

# -------------------------
# Notifications / Analytics
# -------------------------
from .notification import NotificationCount, NotificationRead
from .analytics import AnalyticsBucket, DailyReport, DashboardSnapshot, StatusCounts

# -------------------------
# Applications / Announcements
# -------------------------
from .application import ApplicationCreate, ApplicationDecision, ApplicationRead
from .announcement import AnnouncementCreate, AnnouncementRead, AnnouncementUpdate

__all__ = [
    # enums
    "Action",
    "ApplicationStatus",
    "ComplaintStatus",
    "GuestStatus",
    "MaintenanceStatus",
    "NotificationKind",
    "RequestKind",
    "Role",
    "SleepoverStatus",
    "TimeUnit",

    # requests
    "AnyRequest",
    "Complaint",
    "ComplaintCreate",
    "GuestVisit",
    "GuestVisitCreate",
    "MaintenanceTicket",
    "MaintenanceTicketCreate",
    "RequestRecord",
    "SleepoverRequest",
    "SleepoverRequestCreate",
    "StaffAssignment",
    "TransitionBody",
    "request_adapter",

    # identity
    "Actor",

    # notifications / analytics
    "NotificationCount",
    "NotificationRead",
    "AnalyticsBucket",
    "DailyReport",
    "DashboardSnapshot",
    "StatusCounts",

    # applications / announcements
    "ApplicationCreate",
    "ApplicationDecision",
    "ApplicationRead",
    "AnnouncementCreate",
    "AnnouncementRead",
    "AnnouncementUpdate",
]
