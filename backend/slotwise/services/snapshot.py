from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotwise.core.exceptions import NoCoursesError, NoLecturersError, NoRoomsError, NoTimeSlotsError
from slotwise.models.course import Course
from slotwise.models.lecturer import Lecturer
from slotwise.models.room import LAB_ROOM_TYPES, Room
from slotwise.models.time_slot import TimeSlot
from slotwise.models.timetable import TimetableEntry
from slotwise.schemas.settings import DAY_VALUES, normalize_day, normalize_time, parse_time_to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CourseData:
    id: str
    code: str
    name: str
    department: str
    year_level: int
    enrollment_count: int
    requires_lab: bool = False
    lecturer_id: str | None = None
    prerequisite_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoomData:
    id: str
    name: str
    capacity: int
    type: str
    building: str
    department: str | None = None

    @property
    def is_lab(self) -> bool:
        return self.type in {item.value for item in LAB_ROOM_TYPES}


@dataclass(frozen=True)
class AvailabilityWindowData:
    day: str
    start: int
    end: int

    def contains(self, day: str, start: int, end: int) -> bool:
        return self.day == day and self.start <= start and self.end >= end


@dataclass(frozen=True)
class LecturerData:
    id: str
    name: str
    department: str
    max_courses: int = 6
    user_id: str | None = None
    availability: tuple[AvailabilityWindowData, ...] = ()

    @property
    def declares_availability(self) -> bool:
        return bool(self.availability)

    def is_available(self, day: str, start: int, end: int) -> bool:
        if not self.availability:
            return True
        return any(window.contains(day, start, end) for window in self.availability)


@dataclass(frozen=True)
class SlotData:
    id: int
    start: int
    end: int

    def overlaps(self, other: "SlotData") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class Gene:
    """One course assignment inside a chromosome."""

    course_id: str
    room_id: str
    lecturer_id: str
    day: str
    time_slot_id: int

    def __post_init__(self) -> None:
        for name in ("course_id", "room_id", "lecturer_id"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"Gene field '{name}' is required")
        if self.day not in DAY_VALUES:
            raise ValueError(f"Gene day '{self.day}' is not a valid day")
        if isinstance(self.time_slot_id, bool) or not isinstance(self.time_slot_id, int):
            raise ValueError("Gene field 'time_slot_id' must be an integer")

    def replace(self, **changes) -> "Gene":
        values = {
            "course_id": self.course_id,
            "room_id": self.room_id,
            "lecturer_id": self.lecturer_id,
            "day": self.day,
            "time_slot_id": self.time_slot_id,
        }
        values.update(changes)
        return Gene(**values)


Chromosome = tuple[Gene, ...]


@dataclass(frozen=True)
class EntryData:
    """A persisted (or about to be persisted) timetable entry as seen by the detector."""

    key: str | None
    course_id: str | None
    room_id: str | None
    lecturer_id: str | None
    day: str | None
    time_slot_id: int | None
    academic_year: str
    semester: int

    @classmethod
    def from_model(cls, entry: TimetableEntry) -> "EntryData":
        return cls(
            key=entry.id,
            course_id=entry.course_id,
            room_id=entry.room_id,
            lecturer_id=entry.lecturer_id,
            day=entry.day,
            time_slot_id=entry.time_slot_id,
            academic_year=entry.academic_year,
            semester=entry.semester,
        )


@dataclass(frozen=True)
class DomainSnapshot:
    academic_year: str
    semester: int
    courses: tuple[CourseData, ...]
    rooms: tuple[RoomData, ...]
    lecturers: tuple[LecturerData, ...]
    slots: tuple[SlotData, ...]
    days: tuple[str, ...] = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY")
    entries: tuple[EntryData, ...] = field(default=())

    @cached_property
    def courses_by_id(self) -> dict[str, CourseData]:
        return {course.id: course for course in self.courses}

    @cached_property
    def courses_by_code(self) -> dict[str, CourseData]:
        return {course.code: course for course in self.courses}

    @cached_property
    def rooms_by_id(self) -> dict[str, RoomData]:
        return {room.id: room for room in self.rooms}

    @cached_property
    def lecturers_by_id(self) -> dict[str, LecturerData]:
        return {lecturer.id: lecturer for lecturer in self.lecturers}

    @cached_property
    def slots_by_id(self) -> dict[int, SlotData]:
        return {slot.id: slot for slot in self.slots}


def course_to_data(course: Course) -> CourseData:
    return CourseData(
        id=course.id,
        code=course.code,
        name=course.name,
        department=course.department,
        year_level=course.year_level,
        enrollment_count=course.enrollment_count or 0,
        requires_lab=bool(course.requires_lab),
        lecturer_id=course.lecturer_id,
        prerequisite_ids=tuple(course.prerequisite_ids or ()),
    )


def room_to_data(room: Room) -> RoomData:
    room_type = room.type.value if hasattr(room.type, "value") else str(room.type)
    return RoomData(
        id=room.id,
        name=room.name,
        capacity=room.capacity,
        type=room_type,
        building=room.building,
        department=room.department or None,
    )


def _parse_windows(lecturer: Lecturer) -> tuple[AvailabilityWindowData, ...]:
    windows: list[AvailabilityWindowData] = []
    for raw in lecturer.availability_windows or []:
        try:
            day = normalize_day(str(raw["day"]))
            start = parse_time_to_minutes(normalize_time(str(raw["start_time"])))
            end = parse_time_to_minutes(normalize_time(str(raw["end_time"])))
        except (KeyError, TypeError, ValueError):
            logger.warning(
                "AVAILABILITY WINDOW SKIPPED | lecturer_id=%s | window=%s",
                lecturer.id,
                raw,
            )
            continue
        if end <= start:
            logger.warning(
                "AVAILABILITY WINDOW SKIPPED | lecturer_id=%s | window=%s | reason=empty interval",
                lecturer.id,
                raw,
            )
            continue
        windows.append(AvailabilityWindowData(day=day, start=start, end=end))
    return tuple(windows)


def lecturer_to_data(lecturer: Lecturer) -> LecturerData:
    return LecturerData(
        id=lecturer.id,
        name=lecturer.name,
        department=lecturer.department,
        max_courses=lecturer.max_courses,
        user_id=lecturer.user_id,
        availability=_parse_windows(lecturer),
    )


def slot_to_data(slot: TimeSlot) -> SlotData:
    return SlotData(
        id=slot.id,
        start=parse_time_to_minutes(normalize_time(slot.start_time)),
        end=parse_time_to_minutes(normalize_time(slot.end_time)),
    )


def load_reference_snapshot(
    db: Session,
    academic_year: str,
    semester: int,
    working_days: list[str] | tuple[str, ...] | None = None,
) -> DomainSnapshot:
    """Load every reference set and the term's entries without emptiness checks."""
    courses = db.execute(select(Course).order_by(Course.code)).scalars().all()
    rooms = db.execute(select(Room).where(Room.is_active.is_(True)).order_by(Room.name)).scalars().all()
    lecturers = db.execute(select(Lecturer).order_by(Lecturer.name)).scalars().all()
    slots = db.execute(
        select(TimeSlot).where(TimeSlot.is_break.is_(False)).order_by(TimeSlot.start_time)
    ).scalars().all()
    entries = db.execute(
        select(TimetableEntry)
        .where(
            TimetableEntry.academic_year == academic_year,
            TimetableEntry.semester == semester,
        )
        .order_by(TimetableEntry.created_at, TimetableEntry.id)
    ).scalars().all()

    days = tuple(normalize_day(day) for day in (working_days or DAY_VALUES[:5]))
    return DomainSnapshot(
        academic_year=academic_year,
        semester=semester,
        courses=tuple(course_to_data(item) for item in courses),
        rooms=tuple(room_to_data(item) for item in rooms),
        lecturers=tuple(lecturer_to_data(item) for item in lecturers),
        slots=tuple(slot_to_data(item) for item in slots),
        days=days,
        entries=tuple(EntryData.from_model(item) for item in entries),
    )


def load_domain_snapshot(
    db: Session,
    academic_year: str,
    semester: int,
    working_days: list[str] | tuple[str, ...] | None = None,
) -> DomainSnapshot:
    snapshot = load_reference_snapshot(db, academic_year, semester, working_days)
    if not snapshot.courses:
        raise NoCoursesError(academic_year, semester)
    if not snapshot.rooms:
        raise NoRoomsError(academic_year, semester)
    if not snapshot.lecturers:
        raise NoLecturersError(academic_year, semester)
    if not snapshot.slots:
        raise NoTimeSlotsError(academic_year, semester)
    return snapshot
