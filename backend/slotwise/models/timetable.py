import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from slotwise.db.base import Base


class ConflictType(str, Enum):
    ROOM = "ROOM"
    LECTURER = "LECTURER"
    AVAILABILITY = "AVAILABILITY"
    CAPACITY = "CAPACITY"
    MAX_COURSES = "MAX_COURSES"
    STUDENT_GROUP = "STUDENT_GROUP"
    PREREQUISITE = "PREREQUISITE"
    INVALID_ENTRY = "INVALID_ENTRY"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    room_id: Mapped[str] = mapped_column(String(36), nullable=False)
    lecturer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    time_slot_id: Mapped[int] = mapped_column(Integer, nullable=False)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    has_conflict: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    conflict_type: Mapped[ConflictType | None] = mapped_column(
        SAEnum(ConflictType, name="conflict_type"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class Conflict(Base):
    __tablename__ = "conflicts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entry1_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Null for single-entry violations such as CAPACITY or AVAILABILITY.
    entry2_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    type: Mapped[ConflictType] = mapped_column(SAEnum(ConflictType, name="conflict_type"), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
