# core/applications.py

"""
Residence applications (onboarding).

A newbie applies once; an admin accepts or denies. Acceptance promotes the
applicant to the student role in Supabase Auth metadata.
"""

from datetime import timedelta
from typing import Callable, List, Optional

from core.config import settings
from core.errors import InvalidTransitionError, UnauthorizedError, ValidationError
from core.lifecycle import validate_model
from core.logging_config import logger
from core.notifications import NotificationSink
from core.permissions import role_has_permission
from core.store import APPLICATIONS, RequestStore, get_store
from core.supabase_client import get_supabase_client
from core.utils import parse_timestamp, utcnow
from models.application import ApplicationCreate, ApplicationRead
from models.enums import ApplicationStatus, NotificationKind, Role
from models.user import Actor


DECISIONS = {
    "accept": ApplicationStatus.accepted,
    "deny": ApplicationStatus.denied,
}


def promote_in_supabase(user_id: str, role: str):
    """Merge the new role into the applicant's Supabase user_metadata."""
    client = get_supabase_client()
    if client is None:
        logger.warning(f"Cannot update role for {user_id}: Supabase not configured")
        return

    try:
        client.auth.admin.update_user_by_id(user_id, {"user_metadata": {"role": role}})
        logger.info(f"User {user_id} promoted to {role}")
    except Exception as e:
        # the decision itself stands; an admin can fix the role by hand
        logger.error(f"Failed to update role for {user_id}: {e}")


class ApplicationService:

    def __init__(
        self,
        store: RequestStore,
        sink: Optional[NotificationSink] = None,
        role_updater: Optional[Callable[[str, str], None]] = None,
        clock=utcnow,
    ):
        self.store = store
        self.sink = sink or NotificationSink(store)
        self.role_updater = role_updater
        self.clock = clock

    def submit(self, applicant: Actor, payload) -> ApplicationRead:
        if not role_has_permission(str(applicant.role), "applications:submit", applicant.permissions):
            raise UnauthorizedError("Only applicants can submit a residence application", reason="role")

        fields = validate_model(ApplicationCreate, payload, "application")

        open_apps = self.store.query(
            APPLICATIONS,
            [("applicant_id", "==", applicant.id), ("status", "==", ApplicationStatus.pending.value)],
        )
        if open_apps:
            raise InvalidTransitionError(
                "You already have an application awaiting a decision",
                current_status=ApplicationStatus.pending.value,
            )

        now = self.clock()
        doc = {
            **fields,
            "applicant_id": applicant.id,
            "status": ApplicationStatus.pending.value,
            "communication_log": [],
            "created_at": now,
            "updated_at": now,
        }
        doc["id"] = self.store.create(APPLICATIONS, doc)

        logger.info(f"Applicant {applicant.id} submitted application {doc['id']}")
        return ApplicationRead(**doc)

    def get(self, application_id: str) -> ApplicationRead:
        return ApplicationRead(**self.store.get(APPLICATIONS, application_id))

    def list(self, status: Optional[str] = None, applicant_id: Optional[str] = None) -> List[ApplicationRead]:
        filters = []
        if status:
            if status not in ApplicationStatus.list():
                raise ValidationError(f"Unknown application status '{status}'", fields=["status"])
            filters.append(("status", "==", status))
        if applicant_id:
            filters.append(("applicant_id", "==", applicant_id))
        rows = self.store.query(APPLICATIONS, filters, order_by="created_at", descending=True)
        return [ApplicationRead(**r) for r in rows]

    def process(
        self,
        application_id: str,
        admin: Actor,
        decision: str,
        message: str,
        room_number: Optional[str] = None,
        tenant_code: Optional[str] = None,
        defer: Optional[Callable] = None,
    ) -> ApplicationRead:
        if not role_has_permission(str(admin.role), "applications:review", admin.permissions):
            raise UnauthorizedError("Only admins can process applications", reason="role")

        status = DECISIONS.get(decision)
        if status is None:
            raise InvalidTransitionError(f"Unknown decision '{decision}'", action=decision)

        record = self.store.get(APPLICATIONS, application_id)
        current = record["status"]
        if current != ApplicationStatus.pending.value:
            raise InvalidTransitionError(
                "Application has already been processed",
                current_status=current,
                action=decision,
            )

        now = self.clock()
        previous = parse_timestamp(record.get("updated_at"))
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)

        entry = {
            "message": message,
            "sent_by": str(admin.role),
            "status": status.value,
            "admin_id": admin.id,
            "timestamp": now,
        }
        update = {
            "status": status.value,
            "updated_at": now,
            "communication_log": list(record.get("communication_log") or []) + [entry],
        }
        if status == ApplicationStatus.accepted:
            if room_number:
                update["room_number"] = room_number
            if tenant_code:
                update["tenant_code"] = tenant_code

        if not self.store.update_if(APPLICATIONS, application_id, {"status": current}, update):
            raise InvalidTransitionError(
                "Application was processed by someone else",
                current_status=self.store.get(APPLICATIONS, application_id)["status"],
                action=decision,
            )

        logger.info(f"Admin {admin.id} {status.value} application {application_id}")

        if status == ApplicationStatus.accepted and self.role_updater:
            self.role_updater(record["applicant_id"], Role.student.value)

        title = "Application Approved" if status == ApplicationStatus.accepted else "Application Denied"
        self.sink.emit(record["applicant_id"], title, message, NotificationKind.application, defer=defer)

        return ApplicationRead(**{**record, **update})

    def add_message(self, application_id: str, actor: Actor, message: str) -> ApplicationRead:
        """Append a free-text note to the application's communication log."""
        record = self.store.get(APPLICATIONS, application_id)
        is_reviewer = role_has_permission(str(actor.role), "applications:review", actor.permissions)
        if not is_reviewer and record.get("applicant_id") != actor.id:
            raise UnauthorizedError("You cannot comment on this application", reason="not_owner")

        now = self.clock()
        entry = {"message": message, "sent_by": str(actor.role), "timestamp": now}
        update = {
            "communication_log": list(record.get("communication_log") or []) + [entry],
            "updated_at": now,
        }
        self.store.update(APPLICATIONS, application_id, update)
        return ApplicationRead(**{**record, **update})


# ============================================================
# Process-wide service
# ============================================================
_service: Optional[ApplicationService] = None


def get_application_service() -> ApplicationService:
    global _service
    if _service is None:
        store = get_store()
        updater = promote_in_supabase if settings.STORE_BACKEND == "supabase" else None
        _service = ApplicationService(store, NotificationSink(store), role_updater=updater)
    return _service
