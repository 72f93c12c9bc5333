from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from slotwise.api.deps import get_db
from slotwise.core.config import get_settings
from slotwise.core.exceptions import ResourceNotFoundError
from slotwise.models.timetable import Conflict, TimetableEntry
from slotwise.schemas.conflict import (
    AlternativeSuggestion,
    AssignmentValidationRequest,
    AssignmentValidationResponse,
    ConflictOut,
    EntryConflictCheckResponse,
    ResolveConflictRequest,
    TermRevalidationRequest,
    TermRevalidationResponse,
    descriptor_to_out,
)
from slotwise.services.conflict_recorder import apply_batch_conflicts, refresh_entry_flags
from slotwise.services.conflict_service import ConflictDetector
from slotwise.services.generation_service import load_generation_settings
from slotwise.services.notifications import DatabaseConflictNotifier
from slotwise.services.snapshot import EntryData, load_reference_snapshot

router = APIRouter()

settings = get_settings()


def _candidate(payload: AssignmentValidationRequest) -> EntryData:
    return EntryData(
        key=payload.entry_id,
        course_id=payload.course_id,
        room_id=payload.room_id,
        lecturer_id=payload.lecturer_id,
        day=payload.day,
        time_slot_id=payload.time_slot_id,
        academic_year=payload.academic_year,
        semester=payload.semester,
    )


@router.post("/check", response_model=EntryConflictCheckResponse)
def check_conflicts(payload: AssignmentValidationRequest, db: Session = Depends(get_db)) -> EntryConflictCheckResponse:
    snapshot = load_reference_snapshot(db, payload.academic_year, payload.semester, settings.working_days)
    detector = ConflictDetector(snapshot)
    descriptors = detector.check_entry(_candidate(payload), snapshot.entries)
    return EntryConflictCheckResponse(conflicts=[descriptor_to_out(item) for item in descriptors])


@router.post("/validate", response_model=AssignmentValidationResponse)
def validate_assignment(
    payload: AssignmentValidationRequest,
    db: Session = Depends(get_db),
) -> AssignmentValidationResponse:
    snapshot = load_reference_snapshot(db, payload.academic_year, payload.semester, settings.working_days)
    detector = ConflictDetector(snapshot)
    descriptors = detector.list_conflicts(_candidate(payload), snapshot.entries)
    return AssignmentValidationResponse(
        valid=not descriptors,
        conflicts=[descriptor_to_out(item) for item in descriptors],
    )


@router.post("/revalidate", response_model=TermRevalidationResponse)
def revalidate_term(payload: TermRevalidationRequest, db: Session = Depends(get_db)) -> TermRevalidationResponse:
    snapshot = load_reference_snapshot(db, payload.academic_year, payload.semester, settings.working_days)
    conflicts = apply_batch_conflicts(
        db,
        payload.academic_year,
        payload.semester,
        snapshot=snapshot,
        notifier=DatabaseConflictNotifier(db),
        max_courses_per_day=load_generation_settings(db).max_courses_per_day,
    )
    db.commit()
    flagged = db.execute(
        select(func.count(TimetableEntry.id)).where(
            TimetableEntry.academic_year == payload.academic_year,
            TimetableEntry.semester == payload.semester,
            TimetableEntry.has_conflict.is_(True),
        )
    ).scalar_one()
    return TermRevalidationResponse(
        academic_year=payload.academic_year,
        semester=payload.semester,
        conflicts=[ConflictOut.model_validate(item) for item in conflicts],
        flagged_entries=flagged,
    )


@router.get("", response_model=list[ConflictOut])
def list_conflicts(
    academic_year: str | None = Query(default=None, max_length=20),
    semester: int | None = Query(default=None, ge=1, le=3),
    resolved: bool | None = None,
    db: Session = Depends(get_db),
) -> list[Conflict]:
    query = select(Conflict)
    if academic_year is not None:
        query = query.where(Conflict.academic_year == academic_year)
    if semester is not None:
        query = query.where(Conflict.semester == semester)
    if resolved is not None:
        query = query.where(Conflict.resolved.is_(resolved))
    return list(db.execute(query.order_by(Conflict.created_at, Conflict.id)).scalars())


@router.post("/{conflict_id}/resolve", response_model=ConflictOut)
def resolve_conflict(
    conflict_id: str,
    payload: ResolveConflictRequest,
    db: Session = Depends(get_db),
) -> Conflict:
    conflict = db.get(Conflict, conflict_id)
    if conflict is None:
        raise ResourceNotFoundError("Conflict", conflict_id)
    conflict.resolved = True
    conflict.resolution_notes = payload.resolution_notes
    db.flush()
    refresh_entry_flags(db, {item for item in (conflict.entry1_id, conflict.entry2_id) if item})
    db.commit()
    db.refresh(conflict)
    return conflict


@router.get("/{entry_id}/suggestions", response_model=list[AlternativeSuggestion])
def suggest_alternatives(
    entry_id: str,
    limit: int = Query(default=5, ge=1, le=50),
    db: Session = Depends(get_db),
) -> list[AlternativeSuggestion]:
    entry = db.get(TimetableEntry, entry_id)
    if entry is None:
        raise ResourceNotFoundError("TimetableEntry", entry_id)
    snapshot = load_reference_snapshot(db, entry.academic_year, entry.semester, settings.working_days)
    detector = ConflictDetector(snapshot)
    alternatives = detector.suggest_alternatives(EntryData.from_model(entry), snapshot.entries, limit=limit)
    return [
        AlternativeSuggestion(
            day=item.day,
            time_slot_id=item.time_slot_id,
            room_id=item.room_id,
            score=item.score,
            reason=item.reason,
        )
        for item in alternatives
    ]
