import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from slotwise.api.deps import get_ai_client, get_db
from slotwise.api.routes import health
from slotwise.db import bootstrap
from slotwise.db.base import Base
from slotwise.main import app
from slotwise.models.course import Course
from slotwise.models.lecturer import Lecturer
from slotwise.models.room import Room, RoomType
from slotwise.models.time_slot import TimeSlot
from slotwise.services.snapshot import (
    CourseData,
    DomainSnapshot,
    LecturerData,
    RoomData,
    SlotData,
)

ACADEMIC_YEAR = "2024/2025"
SEMESTER = 1


class FakeAIClient:
    """Returns a canned completion or raises, recording every prompt."""

    def __init__(self, response: str | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class RecordingNotifier:
    def __init__(self):
        self.calls: list[tuple] = []

    def notify(self, user_id, conflict_type, entry_id, description):
        self.calls.append((user_id, conflict_type, entry_id, description))


def build_snapshot(
    *,
    courses=None,
    rooms=None,
    lecturers=None,
    slots=None,
    days=("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"),
    entries=(),
) -> DomainSnapshot:
    if courses is None:
        courses = (
            CourseData("c1", "CS101", "Intro to Programming", "CS", 1, 40, lecturer_id="l1"),
            CourseData("c2", "CS201", "Data Structures Lab", "CS", 2, 25, requires_lab=True, lecturer_id="l2"),
            CourseData("c3", "MA101", "Calculus I", "MATH", 1, 50, lecturer_id="l3"),
        )
    if rooms is None:
        rooms = (
            RoomData("r1", "Hall A", 80, "lecture_hall", "Main"),
            RoomData("r2", "Lab 1", 30, "lab", "Science", department="CS"),
            RoomData("r3", "Room 12", 45, "seminar", "Main"),
        )
    if lecturers is None:
        lecturers = (
            LecturerData("l1", "Ada Lovelace", "CS", user_id="u1"),
            LecturerData("l2", "Alan Turing", "CS", user_id="u2"),
            LecturerData("l3", "Emmy Noether", "MATH"),
        )
    if slots is None:
        slots = (
            SlotData(1, 8 * 60, 9 * 60),
            SlotData(2, 9 * 60, 10 * 60),
            SlotData(3, 10 * 60, 11 * 60),
            SlotData(4, 11 * 60, 12 * 60),
        )
    return DomainSnapshot(
        academic_year=ACADEMIC_YEAR,
        semester=SEMESTER,
        courses=tuple(courses),
        rooms=tuple(rooms),
        lecturers=tuple(lecturers),
        slots=tuple(slots),
        days=tuple(days),
        entries=tuple(entries),
    )


@pytest.fixture()
def make_snapshot():
    return build_snapshot


@pytest.fixture()
def snapshot() -> DomainSnapshot:
    return build_snapshot()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def fake_ai_client():
    return FakeAIClient


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def seeded_db(db_session):
    """Reference data mirroring ``build_snapshot`` persisted through the ORM."""
    db_session.add_all(
        [
            Course(id="c1", code="CS101", name="Intro to Programming", department="CS", year_level=1, enrollment_count=40, lecturer_id="l1"),
            Course(id="c2", code="CS201", name="Data Structures Lab", department="CS", year_level=2, enrollment_count=25, requires_lab=True, lecturer_id="l2"),
            Course(id="c3", code="MA101", name="Calculus I", department="MATH", year_level=1, enrollment_count=50, lecturer_id="l3"),
            Room(id="r1", name="Hall A", building="Main", capacity=80, type=RoomType.lecture_hall),
            Room(id="r2", name="Lab 1", building="Science", capacity=30, type=RoomType.lab, department="CS"),
            Room(id="r3", name="Room 12", building="Main", capacity=45, type=RoomType.seminar),
            Lecturer(id="l1", name="Ada Lovelace", department="CS", user_id="u1"),
            Lecturer(id="l2", name="Alan Turing", department="CS", user_id="u2"),
            Lecturer(id="l3", name="Emmy Noether", department="MATH"),
            TimeSlot(id=1, start_time="08:00", end_time="09:00"),
            TimeSlot(id=2, start_time="09:00", end_time="10:00"),
            TimeSlot(id=3, start_time="10:00", end_time="11:00"),
            TimeSlot(id=4, start_time="11:00", end_time="12:00"),
            TimeSlot(id=5, start_time="12:00", end_time="13:00", label="Lunch", is_break=True),
        ]
    )
    db_session.commit()
    return db_session


@pytest.fixture()
def ai_client_holder():
    """Mutable holder so API tests can swap the AI collaborator per request."""
    return {"client": None}


@pytest.fixture()
def client(engine, session_factory, ai_client_holder, monkeypatch):
    monkeypatch.setattr(bootstrap, "engine", engine)
    monkeypatch.setattr(health, "engine", engine)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_client] = lambda: ai_client_holder["client"]

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
