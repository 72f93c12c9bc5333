import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from slotwise.api.deps import get_ai_client, get_db
from slotwise.core.config import get_settings
from slotwise.core.exceptions import ResourceNotFoundError
from slotwise.models.course import Course
from slotwise.models.lecturer import Lecturer
from slotwise.models.room import Room
from slotwise.models.time_slot import TimeSlot
from slotwise.models.timetable import TimetableEntry
from slotwise.schemas.conflict import ConflictOut, EntryWriteResponse, descriptor_to_out
from slotwise.schemas.generator import GenerateTimetableRequest, GenerateTimetableResponse, GenerationStats
from slotwise.schemas.timetable import TimetableEntryCreate, TimetableEntryOut, TimetableEntryUpdate
from slotwise.services.ai_generator import AIScheduleClient
from slotwise.services.conflict_recorder import clear_entry_conflicts, record_entry_conflicts, refresh_entry_flags
from slotwise.services.generation_service import TimetableGenerationService
from slotwise.services.notifications import DatabaseConflictNotifier
from slotwise.services.snapshot import load_reference_snapshot

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def _ensure_references(db: Session, entry: TimetableEntry) -> None:
    for model, resource_type, resource_id in (
        (Course, "Course", entry.course_id),
        (Room, "Room", entry.room_id),
        (Lecturer, "Lecturer", entry.lecturer_id),
        (TimeSlot, "TimeSlot", entry.time_slot_id),
    ):
        if db.get(model, resource_id) is None:
            raise ResourceNotFoundError(resource_type, str(resource_id))


def _get_entry_or_404(db: Session, entry_id: str) -> TimetableEntry:
    entry = db.get(TimetableEntry, entry_id)
    if entry is None:
        raise ResourceNotFoundError("TimetableEntry", entry_id)
    return entry


def _record_and_commit(db: Session, entry: TimetableEntry) -> EntryWriteResponse:
    snapshot = load_reference_snapshot(db, entry.academic_year, entry.semester, settings.working_days)
    descriptors = record_entry_conflicts(
        db,
        entry,
        snapshot=snapshot,
        notifier=DatabaseConflictNotifier(db),
    )
    db.commit()
    db.refresh(entry)
    return EntryWriteResponse(
        entry=TimetableEntryOut.model_validate(entry),
        conflicts=[descriptor_to_out(item) for item in descriptors],
    )


@router.post("/generate", response_model=GenerateTimetableResponse)
def generate_timetable(
    payload: GenerateTimetableRequest,
    db: Session = Depends(get_db),
    ai_client: AIScheduleClient | None = Depends(get_ai_client),
) -> GenerateTimetableResponse:
    service = TimetableGenerationService(
        db,
        ai_client=ai_client,
        generation_settings=payload.settings_override,
    )
    result = service.generate(payload.academic_year, payload.semester)
    return GenerateTimetableResponse(
        academic_year=result.academic_year,
        semester=result.semester,
        method=result.method,
        fitness=result.fitness,
        generations_run=result.generations_run,
        entries=[TimetableEntryOut.model_validate(item) for item in result.entries],
        conflicts=[ConflictOut.model_validate(item) for item in result.conflicts],
        stats=GenerationStats(**result.stats),
        runtime_ms=result.runtime_ms,
    )


@router.get("/entries", response_model=list[TimetableEntryOut])
def list_entries(
    academic_year: str = Query(min_length=4, max_length=20),
    semester: int = Query(ge=1, le=3),
    db: Session = Depends(get_db),
) -> list[TimetableEntry]:
    return list(
        db.execute(
            select(TimetableEntry)
            .where(
                TimetableEntry.academic_year == academic_year,
                TimetableEntry.semester == semester,
            )
            .order_by(TimetableEntry.day, TimetableEntry.time_slot_id, TimetableEntry.id)
        ).scalars()
    )


@router.post("/entries", response_model=EntryWriteResponse, status_code=status.HTTP_201_CREATED)
def create_entry(payload: TimetableEntryCreate, db: Session = Depends(get_db)) -> EntryWriteResponse:
    entry = TimetableEntry(**payload.model_dump(), has_conflict=False)
    _ensure_references(db, entry)
    db.add(entry)
    response = _record_and_commit(db, entry)
    logger.info(
        "TIMETABLE ENTRY CREATED | entry_id=%s | academic_year=%s | semester=%s | conflicts=%s",
        entry.id,
        entry.academic_year,
        entry.semester,
        len(response.conflicts),
    )
    return response


@router.put("/entries/{entry_id}", response_model=EntryWriteResponse)
def update_entry(
    entry_id: str,
    payload: TimetableEntryUpdate,
    db: Session = Depends(get_db),
) -> EntryWriteResponse:
    entry = _get_entry_or_404(db, entry_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(entry, key, value)
    _ensure_references(db, entry)
    return _record_and_commit(db, entry)


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(entry_id: str, db: Session = Depends(get_db)) -> None:
    entry = _get_entry_or_404(db, entry_id)
    others = clear_entry_conflicts(db, entry.id)
    db.delete(entry)
    db.flush()
    refresh_entry_flags(db, others)
    db.commit()
    logger.info("TIMETABLE ENTRY DELETED | entry_id=%s | released=%s", entry_id, len(others))
