# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import os

# Tests never talk to Supabase
os.environ.setdefault("STORE_BACKEND", "memory")

from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from main import create_app
from dependencies.auth import CurrentUser, get_current_user
from core.applications import ApplicationService, get_application_service
from core.lifecycle import LifecycleEngine, get_engine
from core.notifications import NotificationSink
from core.security_codes import CodeBook
from core.store import MemoryStore, get_store, set_store


class FakeClock:
    """Deterministic clock; each reading advances by `step`."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, delta: timedelta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    """Fresh in-memory store, also installed as the process-wide store."""
    store = MemoryStore()
    set_store(store)
    yield store
    set_store(None)


@pytest.fixture
def codebook(memory_store):
    return CodeBook(checkout_pin="1005", code_length=4, store=memory_store)


@pytest.fixture
def sink(memory_store):
    return NotificationSink(memory_store)


@pytest.fixture
def engine(memory_store, sink, codebook, clock):
    return LifecycleEngine(memory_store, sink=sink, codebook=codebook, clock=clock)


@pytest.fixture
def role_updater():
    return Mock()


@pytest.fixture
def application_service(memory_store, sink, role_updater, clock):
    return ApplicationService(memory_store, sink, role_updater=role_updater, clock=clock)


# -----------------------------------------------------
# Users
# -----------------------------------------------------
@pytest.fixture
def student():
    return CurrentUser(
        id="student-1",
        email="student1@residence.test",
        role="student",
        full_name="Lerato Mokoena",
        room_number="B12",
    )


@pytest.fixture
def other_student():
    return CurrentUser(
        id="student-2",
        email="student2@residence.test",
        role="student",
        full_name="Sipho Dlamini",
        room_number="C4",
    )


@pytest.fixture
def admin():
    return CurrentUser(
        id="admin-1",
        email="admin@residence.test",
        role="admin",
        full_name="Residence Admin",
    )


@pytest.fixture
def security():
    return CurrentUser(
        id="security-1",
        email="gate@residence.test",
        role="security",
        full_name="Gate Security",
    )


@pytest.fixture
def newbie():
    return CurrentUser(
        id="newbie-1",
        email="applicant@residence.test",
        role="newbie",
        full_name="Naledi Khumalo",
    )


# -----------------------------------------------------
# Sample submissions, one per kind
# -----------------------------------------------------
@pytest.fixture
def payloads():
    return {
        "guest": {
            "first_name": "Thandi",
            "last_name": "Zulu",
            "phone_number": "0712345678",
            "room_number": "B12",
            "purpose": "Study group",
            "from_date": "2024-06-01",
        },
        "sleepover": {
            "guest_name": "Thabo",
            "guest_surname": "Nkosi",
            "guest_phone": "0821234567",
            "room_number": "B12",
            "start_date": "2024-06-01",
            "end_date": "2024-06-03",
        },
        "maintenance": {
            "title": "Leaking tap",
            "category": "bathroom",
            "description": "Basin tap drips all night",
            "room_number": "B12",
            "priority": "high",
        },
        "complaint": {
            "title": "Loud music",
            "description": "Music from the common room after midnight",
            "category": "noise",
            "location": "Block C",
        },
    }


# -----------------------------------------------------
# App + client
# -----------------------------------------------------
@pytest.fixture(scope="function")
def app(memory_store, engine, application_service):
    """Create a test FastAPI application instance wired to the in-memory store."""
    app = create_app()
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_application_service] = lambda: application_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(app):
    """Switch the authenticated user: login(student)."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


@pytest.fixture(autouse=True)
def reset_cache():
    """Reset cache before each test."""
    from core.cache import cache_clear
    cache_clear()
    yield
    cache_clear()
