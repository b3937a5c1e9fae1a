# tests/test_lifecycle.py

"""
Tests for the request lifecycle engine.
"""

from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest

from core.errors import (
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from core.lifecycle import MACHINES, LifecycleEngine
from core.notifications import NotificationSink
from core.store import NOTIFICATIONS, MemoryStore
from models.enums import Action, RequestKind


KINDS = ["guest", "sleepover", "maintenance", "complaint"]


def notifications_for(store, user_id):
    return store.query(NOTIFICATIONS, [("user_id", "==", user_id)])


# -----------------------------------------------------
# Submit
# -----------------------------------------------------
@pytest.mark.parametrize(
    "kind, field",
    [
        ("guest", "first_name"),
        ("guest", "from_date"),
        ("sleepover", "guest_name"),
        ("sleepover", "end_date"),
        ("maintenance", "title"),
        ("maintenance", "category"),
        ("complaint", "description"),
    ],
)
def test_submit_missing_field_writes_nothing(engine, memory_store, student, payloads, kind, field):
    payload = dict(payloads[kind])
    del payload[field]

    with pytest.raises(ValidationError) as exc:
        engine.submit(kind, student, payload)

    assert field in exc.value.fields
    assert memory_store.query(MACHINES[RequestKind(kind)].collection) == []


def test_submit_blank_string_is_missing(engine, memory_store, student, payloads):
    payload = {**payloads["complaint"], "title": "   "}

    with pytest.raises(ValidationError) as exc:
        engine.submit("complaint", student, payload)

    assert exc.value.fields == ["title"]
    assert memory_store.query("complaints") == []


def test_submit_rejects_end_before_start(engine, student, payloads):
    payload = {**payloads["sleepover"], "start_date": "2024-06-05", "end_date": "2024-06-03"}

    with pytest.raises(ValidationError) as exc:
        engine.submit("sleepover", student, payload)

    assert "end_date" in exc.value.fields


def test_submit_rejects_unknown_category(engine, student, payloads):
    payload = {**payloads["maintenance"], "category": "garden"}

    with pytest.raises(ValidationError) as exc:
        engine.submit("maintenance", student, payload)

    assert exc.value.fields == ["category"]


def test_newbie_cannot_submit_requests(engine, newbie, payloads):
    with pytest.raises(UnauthorizedError) as exc:
        engine.submit("complaint", newbie, payloads["complaint"])
    assert exc.value.reason == "role"


@pytest.mark.parametrize("kind", KINDS)
def test_submit_then_get_round_trip(engine, student, payloads, kind):
    created = engine.submit(kind, student, payloads[kind])
    fetched = engine.get(kind, created.id)

    assert fetched.status.value == MACHINES[RequestKind(kind)].initial
    assert fetched.requester_id == student.id
    assert fetched.kind == kind
    assert fetched.created_at == fetched.updated_at
    assert fetched.admin_response is None

    for field, value in payloads[kind].items():
        stored = getattr(fetched, field)
        if isinstance(stored, date):
            stored = stored.isoformat()
        assert str(stored) == value


def test_guest_is_on_premises_from_submit(engine, student, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    assert guest.status.value == "active"
    assert guest.is_active is True
    assert guest.check_in_time == guest.created_at
    assert guest.check_out_time is None


def test_submit_does_not_notify_by_default(engine, memory_store, student, payloads):
    engine.submit("maintenance", student, payloads["maintenance"])
    assert notifications_for(memory_store, student.id) == []


def test_submit_notifies_when_enabled(memory_store, sink, codebook, clock, student, payloads):
    engine = LifecycleEngine(memory_store, sink=sink, codebook=codebook, clock=clock, notify_on_submit=True)
    engine.submit("maintenance", student, payloads["maintenance"])

    [notification] = notifications_for(memory_store, student.id)
    assert notification["title"] == "Maintenance Request Received"
    assert "pending" in notification["message"]


# -----------------------------------------------------
# Sleepover flow
# -----------------------------------------------------
def test_sleepover_approval_scenario(engine, memory_store, student, admin, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])
    assert request.start_date == date(2024, 6, 1)
    assert request.end_date == date(2024, 6, 3)

    approved = engine.transition("sleepover", request.id, admin, "approve", "enjoy your stay")

    assert approved.status.value == "approved"
    assert approved.is_active is True
    assert approved.admin_response == "enjoy your stay"

    [notification] = notifications_for(memory_store, student.id)
    assert "Sleepover" in notification["title"]
    assert "approved" in notification["message"]


def test_sleepover_approval_sets_code_and_check_in(engine, student, admin, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])
    approved = engine.transition("sleepover", request.id, admin, "approve")

    assert approved.security_code
    assert len(approved.security_code) == 4
    assert approved.check_in_time is not None
    assert approved.check_in_time == approved.updated_at


def test_sleepover_checkout_with_wrong_code_is_refused(engine, student, admin, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])
    approved = engine.transition("sleepover", request.id, admin, "approve")
    wrong = "0000" if approved.security_code != "0000" else "1111"

    with pytest.raises(UnauthorizedError) as exc:
        engine.transition("sleepover", request.id, student, "checkout", code=wrong)

    assert exc.value.reason == "invalid_code"
    current = engine.get("sleepover", request.id)
    assert current.status.value == "approved"
    assert current.is_active is True


def test_sleepover_checkout_with_code(engine, student, security, admin, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])
    approved = engine.transition("sleepover", request.id, admin, "approve")

    done = engine.transition("sleepover", request.id, security, "checkout", code=approved.security_code)

    assert done.status.value == "checked-out"
    assert done.is_active is False
    assert done.sign_out_time is not None


def test_sleepover_fixed_code_from_codebook(memory_store, sink, clock, student, admin, payloads):
    from core.security_codes import CodeBook

    engine = LifecycleEngine(memory_store, sink=sink, codebook=CodeBook("1005", sleepover_code="2024"), clock=clock)
    request = engine.submit("sleepover", student, payloads["sleepover"])

    assert engine.transition("sleepover", request.id, admin, "approve").security_code == "2024"


def test_rejected_sleepover_cannot_be_checked_out(engine, student, admin, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])
    engine.transition("sleepover", request.id, admin, "reject", "no space this weekend")

    with pytest.raises(InvalidTransitionError) as exc:
        engine.transition("sleepover", request.id, student, "checkout", code="1234")

    assert exc.value.current_status == "rejected"
    assert exc.value.action == "checkout"


# -----------------------------------------------------
# Guest flow
# -----------------------------------------------------
def test_guest_checkout_with_pin(engine, student, security, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    done = engine.transition("guest", guest.id, security, "checkout", code="1005")

    assert done.status.value == "checked-out"
    assert done.is_active is False
    assert done.check_out_time is not None

    with pytest.raises(InvalidTransitionError) as exc:
        engine.transition("guest", guest.id, security, "checkout", code="1005")
    assert exc.value.current_status == "checked-out"


def test_guest_checkout_with_wrong_pin(engine, student, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    with pytest.raises(UnauthorizedError) as exc:
        engine.transition("guest", guest.id, student, "checkout", code="9999")

    assert exc.value.reason == "invalid_code"
    assert engine.get("guest", guest.id).status.value == "active"


def test_guest_checkout_uses_rotated_pin(engine, codebook, student, payloads):
    guest = engine.submit("guest", student, payloads["guest"])
    codebook.rotate_checkout_pin("4321")

    with pytest.raises(UnauthorizedError):
        engine.transition("guest", guest.id, student, "checkout", code="1005")

    assert engine.transition("guest", guest.id, student, "checkout", code="4321").status.value == "checked-out"


def test_admin_declines_guest(engine, student, admin, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    declined = engine.transition("guest", guest.id, admin, "decline")

    assert declined.status.value == "declined"
    assert declined.is_active is False


# -----------------------------------------------------
# Maintenance / complaints
# -----------------------------------------------------
def test_maintenance_full_path(engine, student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])

    started = engine.transition("maintenance", ticket.id, admin, "start", "Plumber booked for Monday")
    assert started.status.value == "in_progress"

    completed = engine.transition("maintenance", ticket.id, admin, "complete")
    assert completed.status.value == "completed"
    # an earlier response is kept when none is given
    assert completed.admin_response == "Plumber booked for Monday"


def test_maintenance_can_be_rejected_while_in_progress(engine, student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])
    engine.transition("maintenance", ticket.id, admin, "start")

    assert engine.transition("maintenance", ticket.id, admin, "reject").status.value == "rejected"


def test_complaint_cannot_skip_to_resolved(engine, student, admin, payloads):
    complaint = engine.submit("complaint", student, payloads["complaint"])

    with pytest.raises(InvalidTransitionError) as exc:
        engine.transition("complaint", complaint.id, admin, "resolve")

    assert exc.value.current_status == "pending"
    assert exc.value.action == "resolve"


def test_unknown_action(engine, student, admin, payloads):
    complaint = engine.submit("complaint", student, payloads["complaint"])

    with pytest.raises(InvalidTransitionError):
        engine.transition("complaint", complaint.id, admin, "teleport")


def test_missing_request(engine, admin):
    with pytest.raises(NotFoundError):
        engine.transition("complaint", "does-not-exist", admin, "start")


def test_admin_response_defaults_to_notification_message(engine, student, admin, payloads):
    complaint = engine.submit("complaint", student, payloads["complaint"])

    started = engine.transition("complaint", complaint.id, admin, "start")

    assert started.admin_response == 'Your complaint "Loud music" has been in_progress'


# -----------------------------------------------------
# Staff assignment
# -----------------------------------------------------
@pytest.mark.parametrize("kind", ["maintenance", "complaint"])
def test_assign_keeps_status_and_bumps_updated_at(engine, memory_store, student, admin, payloads, kind):
    ticket = engine.submit(kind, student, payloads[kind])

    assigned = engine.assign(kind, ticket.id, admin, "staff-7")

    assert assigned.assigned_staff_id == "staff-7"
    assert assigned.status.value == "pending"
    assert assigned.updated_at > ticket.updated_at
    assert engine.get(kind, ticket.id).assigned_staff_id == "staff-7"
    # no student notification for a back-office hand-off
    assert notifications_for(memory_store, student.id) == []


def test_reassign_in_progress_ticket(engine, student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])
    engine.transition("maintenance", ticket.id, admin, "start")
    engine.assign("maintenance", ticket.id, admin, "staff-7")

    reassigned = engine.assign("maintenance", ticket.id, admin, "staff-9")

    assert reassigned.assigned_staff_id == "staff-9"
    assert reassigned.status.value == "in_progress"


@pytest.mark.parametrize("user", ["student", "security"])
def test_only_admins_assign(engine, student, request, payloads, user):
    complaint = engine.submit("complaint", student, payloads["complaint"])

    with pytest.raises(UnauthorizedError) as exc:
        engine.assign("complaint", complaint.id, request.getfixturevalue(user), "staff-7")

    assert exc.value.reason == "role"
    assert engine.get("complaint", complaint.id).assigned_staff_id is None


def test_closed_tickets_are_not_assigned(engine, student, admin, payloads):
    complaint = engine.submit("complaint", student, payloads["complaint"])
    engine.transition("complaint", complaint.id, admin, "reject")

    with pytest.raises(InvalidTransitionError) as exc:
        engine.assign("complaint", complaint.id, admin, "staff-7")

    assert exc.value.current_status == "rejected"


def test_guests_are_not_assigned(engine, student, admin, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    with pytest.raises(ValidationError):
        engine.assign("guest", guest.id, admin, "staff-7")

    with pytest.raises(ValidationError) as exc:
        engine.assign("maintenance", guest.id, admin, "   ")
    assert exc.value.fields == ["staff_id"]


# -----------------------------------------------------
# Timestamps
# -----------------------------------------------------
def test_updated_at_strictly_increases_even_with_frozen_clock(memory_store, sink, codebook, student, admin, payloads):
    frozen = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    engine = LifecycleEngine(memory_store, sink=sink, codebook=codebook, clock=lambda: frozen)

    ticket = engine.submit("maintenance", student, payloads["maintenance"])
    started = engine.transition("maintenance", ticket.id, admin, "start")
    completed = engine.transition("maintenance", ticket.id, admin, "complete")

    assert ticket.created_at == ticket.updated_at == frozen
    assert ticket.updated_at < started.updated_at < completed.updated_at
    assert completed.created_at == frozen


# -----------------------------------------------------
# Authorization
# -----------------------------------------------------
def test_student_cannot_approve(engine, student, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])

    with pytest.raises(UnauthorizedError) as exc:
        engine.transition("sleepover", request.id, student, "approve")

    assert exc.value.reason == "role"
    assert engine.get("sleepover", request.id).status.value == "pending"


def test_security_cannot_review(engine, student, security, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])

    with pytest.raises(UnauthorizedError):
        engine.transition("maintenance", ticket.id, security, "start")


def test_student_cannot_check_out_someone_elses_guest(engine, student, other_student, payloads):
    guest = engine.submit("guest", student, payloads["guest"])

    with pytest.raises(UnauthorizedError) as exc:
        engine.transition("guest", guest.id, other_student, "checkout", code="1005")

    assert exc.value.reason == "not_owner"


def test_get_for_actor_hides_other_students_requests(engine, student, other_student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])

    assert engine.get_for_actor("maintenance", ticket.id, admin).id == ticket.id
    with pytest.raises(UnauthorizedError):
        engine.get_for_actor("maintenance", ticket.id, other_student)


def test_available_actions(engine, student, other_student, admin, security, payloads):
    request = engine.submit("sleepover", student, payloads["sleepover"])

    assert engine.available_actions(request, admin) == [Action.approve, Action.reject]
    assert engine.available_actions(request, student) == []

    approved = engine.transition("sleepover", request.id, admin, "approve")

    assert engine.available_actions(approved, student) == [Action.checkout]
    assert engine.available_actions(approved, security) == [Action.checkout]
    assert engine.available_actions(approved, other_student) == []


# -----------------------------------------------------
# Notifications
# -----------------------------------------------------
def test_each_transition_notifies_requester_once(engine, memory_store, student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])

    engine.transition("maintenance", ticket.id, admin, "start")
    engine.transition("maintenance", ticket.id, admin, "complete")

    messages = [n["message"] for n in notifications_for(memory_store, student.id)]
    assert len(messages) == 2
    assert any("in_progress" in m for m in messages)
    assert any("completed" in m for m in messages)
    assert notifications_for(memory_store, admin.id) == []


def test_failed_notification_does_not_fail_transition(engine, student, admin, payloads):
    ticket = engine.submit("maintenance", student, payloads["maintenance"])

    broken = Mock()
    broken.create.side_effect = RuntimeError("notifications table unavailable")
    engine.sink = NotificationSink(broken)

    started = engine.transition("maintenance", ticket.id, admin, "start")

    assert started.status.value == "in_progress"
    assert engine.get("maintenance", ticket.id).status.value == "in_progress"


# -----------------------------------------------------
# Concurrency + store failures
# -----------------------------------------------------
class RacingStore(MemoryStore):
    """Lets a competing writer move the request just before our guarded write."""

    def __init__(self, competing_status):
        super().__init__()
        self.competing_status = competing_status
        self.raced = False

    def update_if(self, collection, doc_id, expected, fields):
        if not self.raced:
            self.raced = True
            self.update(collection, doc_id, {"status": self.competing_status})
        return super().update_if(collection, doc_id, expected, fields)


def test_lost_race_is_reported_not_overwritten(codebook, clock, student, admin, payloads):
    store = RacingStore(competing_status="rejected")
    engine = LifecycleEngine(store, sink=NotificationSink(store), codebook=codebook, clock=clock)
    request = engine.submit("sleepover", student, payloads["sleepover"])

    with pytest.raises(InvalidTransitionError) as exc:
        engine.transition("sleepover", request.id, admin, "approve")

    assert exc.value.current_status == "rejected"
    current = engine.get("sleepover", request.id)
    assert current.status.value == "rejected"
    assert current.security_code is None
    assert notifications_for(store, student.id) == []


def test_store_failure_propagates(codebook, admin):
    store = Mock()
    store.get.side_effect = StoreUnavailableError()
    engine = LifecycleEngine(store, sink=NotificationSink(store), codebook=codebook)

    with pytest.raises(StoreUnavailableError) as exc:
        engine.transition("complaint", "c-1", admin, "start")

    assert exc.value.to_dict()["retryable"] is True
    store.update_if.assert_not_called()


# -----------------------------------------------------
# Listing
# -----------------------------------------------------
def test_students_only_list_their_own(engine, student, other_student, admin, payloads):
    engine.submit("complaint", student, payloads["complaint"])
    engine.submit("complaint", other_student, payloads["complaint"])

    assert len(engine.list_for_actor("complaint", student)) == 1
    assert len(engine.list_for_actor("complaint", admin)) == 2


def test_list_newest_first_and_status_filter(engine, student, admin, payloads):
    first = engine.submit("complaint", student, payloads["complaint"])
    second = engine.submit("complaint", student, payloads["complaint"])
    engine.transition("complaint", first.id, admin, "start")

    assert [c.id for c in engine.list_requests("complaint")] == [second.id, first.id]
    assert [c.id for c in engine.list_requests("complaint", status="in_progress")] == [first.id]

    with pytest.raises(ValidationError):
        engine.list_requests("complaint", status="archived")


def test_active_and_checked_out_views(engine, student, security, payloads):
    first = engine.submit("guest", student, payloads["guest"])
    second = engine.submit("guest", student, payloads["guest"])
    engine.transition("guest", first.id, security, "checkout", code="1005")

    assert [g.id for g in engine.active("guest")] == [second.id]
    assert [g.id for g in engine.checked_out("guest")] == [first.id]


def test_terminal_states():
    assert MACHINES[RequestKind.guest].terminal == {"checked-out", "declined"}
    assert MACHINES[RequestKind.sleepover].terminal == {"rejected", "checked-out"}
    assert MACHINES[RequestKind.maintenance].terminal == {"completed", "rejected"}
    assert MACHINES[RequestKind.complaint].terminal == {"resolved", "rejected"}
