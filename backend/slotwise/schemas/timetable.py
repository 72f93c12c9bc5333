from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from slotwise.models.timetable import ConflictType
from slotwise.schemas.settings import normalize_day


class TimetableEntryBase(BaseModel):
    course_id: str = Field(min_length=1, max_length=36)
    room_id: str = Field(min_length=1, max_length=36)
    lecturer_id: str = Field(min_length=1, max_length=36)
    day: str
    time_slot_id: int = Field(ge=1)
    academic_year: str = Field(min_length=4, max_length=20)
    semester: int = Field(ge=1, le=3)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day(value)


class TimetableEntryCreate(TimetableEntryBase):
    pass


class TimetableEntryUpdate(BaseModel):
    course_id: str | None = Field(default=None, min_length=1, max_length=36)
    room_id: str | None = Field(default=None, min_length=1, max_length=36)
    lecturer_id: str | None = Field(default=None, min_length=1, max_length=36)
    day: str | None = None
    time_slot_id: int | None = Field(default=None, ge=1)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)


class TimetableEntryOut(TimetableEntryBase):
    id: str
    has_conflict: bool = False
    conflict_type: ConflictType | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
