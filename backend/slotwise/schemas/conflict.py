from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from slotwise.models.timetable import ConflictType
from slotwise.schemas.timetable import TimetableEntryBase, TimetableEntryOut


class ConflictDescriptorOut(BaseModel):
    type: ConflictType
    description: str
    entry_id: str | None = None
    other_entry_id: str | None = None


class ConflictOut(BaseModel):
    id: str
    entry1_id: str
    entry2_id: str | None = None
    type: ConflictType
    description: str
    resolved: bool
    resolution_notes: str | None = None
    academic_year: str
    semester: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class EntryConflictCheckResponse(BaseModel):
    conflicts: list[ConflictDescriptorOut]


class EntryWriteResponse(BaseModel):
    entry: TimetableEntryOut
    conflicts: list[ConflictDescriptorOut]


class AssignmentValidationRequest(TimetableEntryBase):
    entry_id: str | None = Field(default=None, max_length=36)


class AssignmentValidationResponse(BaseModel):
    valid: bool
    conflicts: list[ConflictDescriptorOut]


class TermRevalidationRequest(BaseModel):
    academic_year: str = Field(min_length=4, max_length=20)
    semester: int = Field(ge=1, le=3)


class TermRevalidationResponse(BaseModel):
    academic_year: str
    semester: int
    conflicts: list[ConflictOut]
    flagged_entries: int


class ResolveConflictRequest(BaseModel):
    resolution_notes: str | None = Field(default=None, max_length=2000)


class AlternativeSuggestion(BaseModel):
    day: str
    time_slot_id: int
    room_id: str
    score: float
    reason: str


def descriptor_to_out(descriptor) -> ConflictDescriptorOut:
    return ConflictDescriptorOut(
        type=descriptor.type,
        description=descriptor.description,
        entry_id=descriptor.entry_key,
        other_entry_id=descriptor.other_entry_key,
    )
