# tests/test_applications.py

"""
Tests for residence applications (onboarding).
"""

import pytest

from core.errors import InvalidTransitionError, NotFoundError, UnauthorizedError, ValidationError
from core.store import NOTIFICATIONS


APPLICATION = {
    "full_name": "Naledi Khumalo",
    "email": "naledi@uct.ac.za",
    "phone": "0731234567",
    "place_of_study": "University of Cape Town",
    "accommodation_type": "Single room",
    "location": "Observatory",
}


def test_newbie_submits_application(application_service, newbie):
    application = application_service.submit(newbie, APPLICATION)

    assert application.status.value == "pending"
    assert application.applicant_id == newbie.id
    assert application.communication_log == []
    assert application_service.get(application.id).email == "naledi@uct.ac.za"


def test_only_applicants_can_apply(application_service, student):
    with pytest.raises(UnauthorizedError):
        application_service.submit(student, APPLICATION)


def test_invalid_email(application_service, newbie):
    with pytest.raises(ValidationError) as exc:
        application_service.submit(newbie, {**APPLICATION, "email": "not-an-email"})
    assert exc.value.fields == ["email"]


def test_one_pending_application_at_a_time(application_service, newbie):
    application_service.submit(newbie, APPLICATION)

    with pytest.raises(InvalidTransitionError):
        application_service.submit(newbie, APPLICATION)


def test_accept_application(application_service, memory_store, role_updater, newbie, admin):
    application = application_service.submit(newbie, APPLICATION)

    accepted = application_service.process(
        application.id, admin, "accept", "Welcome to the residence", room_number="B14", tenant_code="T-0142"
    )

    assert accepted.status.value == "accepted"
    assert accepted.room_number == "B14"
    assert accepted.tenant_code == "T-0142"
    assert accepted.updated_at > application.updated_at

    [entry] = accepted.communication_log
    assert entry.message == "Welcome to the residence"
    assert entry.sent_by == "admin"
    assert entry.admin_id == admin.id

    role_updater.assert_called_once_with(newbie.id, "student")

    [notification] = memory_store.query(NOTIFICATIONS, [("user_id", "==", newbie.id)])
    assert notification["title"] == "Application Approved"
    assert notification["kind"] == "application"


def test_deny_application(application_service, memory_store, role_updater, newbie, admin):
    application = application_service.submit(newbie, APPLICATION)

    denied = application_service.process(application.id, admin, "deny", "We are full this semester")

    assert denied.status.value == "denied"
    assert denied.room_number is None
    role_updater.assert_not_called()

    [notification] = memory_store.query(NOTIFICATIONS, [("user_id", "==", newbie.id)])
    assert notification["title"] == "Application Denied"


def test_application_is_processed_once(application_service, newbie, admin):
    application = application_service.submit(newbie, APPLICATION)
    application_service.process(application.id, admin, "deny", "Full")

    with pytest.raises(InvalidTransitionError) as exc:
        application_service.process(application.id, admin, "accept", "Actually, welcome")

    assert exc.value.current_status == "denied"


def test_student_cannot_process(application_service, newbie, student):
    application = application_service.submit(newbie, APPLICATION)

    with pytest.raises(UnauthorizedError):
        application_service.process(application.id, student, "accept", "Welcome")


def test_process_missing_application(application_service, admin):
    with pytest.raises(NotFoundError):
        application_service.process("missing", admin, "accept", "Welcome")


def test_messages_on_application(application_service, newbie, admin, other_student):
    application = application_service.submit(newbie, APPLICATION)

    application_service.add_message(application.id, newbie, "Is parking available?")
    updated = application_service.add_message(application.id, admin, "Yes, one bay per room")

    assert [e.message for e in updated.communication_log] == ["Is parking available?", "Yes, one bay per room"]

    with pytest.raises(UnauthorizedError):
        application_service.add_message(application.id, other_student, "Hello")


def test_list_by_status(application_service, newbie, admin):
    application = application_service.submit(newbie, APPLICATION)

    assert [a.id for a in application_service.list(status="pending")] == [application.id]
    assert application_service.list(status="accepted") == []

    with pytest.raises(ValidationError):
        application_service.list(status="archived")
