from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from slotwise.models.timetable import Conflict, ConflictType, TimetableEntry
from slotwise.services.conflict_service import ConflictDescriptor, ConflictDetector
from slotwise.services.notifications import ConflictNotifier
from slotwise.services.snapshot import DomainSnapshot, EntryData

logger = logging.getLogger(__name__)

# Raised by people, never recomputed by detection.
UNMANAGED_CONFLICT_TYPES = frozenset({ConflictType.MANUAL_REVIEW})

INCREMENTAL_CONFLICT_TYPES = frozenset(
    {ConflictType.ROOM, ConflictType.LECTURER, ConflictType.CAPACITY, ConflictType.AVAILABILITY}
)

ConflictKey = tuple[ConflictType, str, str | None]


def conflict_key(conflict_type: ConflictType, entry1_id: str, entry2_id: str | None) -> ConflictKey:
    if entry2_id is None:
        return (conflict_type, entry1_id, None)
    first, second = sorted((entry1_id, entry2_id))
    return (conflict_type, first, second)


def _term_entries(db: Session, academic_year: str, semester: int) -> list[TimetableEntry]:
    return list(
        db.execute(
            select(TimetableEntry)
            .where(
                TimetableEntry.academic_year == academic_year,
                TimetableEntry.semester == semester,
            )
            .order_by(TimetableEntry.created_at, TimetableEntry.id)
        ).scalars()
    )


def order_entries_for_batch(entries: list[TimetableEntry], snapshot: DomainSnapshot) -> list[TimetableEntry]:
    """Course order first, then day and slot, so repeated runs walk entries identically."""
    course_order = {course.id: index for index, course in enumerate(snapshot.courses)}
    day_order = {day: index for index, day in enumerate(snapshot.days)}
    slot_start = {slot.id: slot.start for slot in snapshot.slots}
    unknown = len(course_order) + 1

    def sort_key(entry: TimetableEntry) -> tuple:
        return (
            course_order.get(entry.course_id, unknown),
            day_order.get(entry.day, len(day_order)),
            slot_start.get(entry.time_slot_id, 24 * 60),
            entry.id,
        )

    return sorted(entries, key=sort_key)


def _notify(
    notifier: ConflictNotifier | None,
    snapshot: DomainSnapshot,
    descriptor: ConflictDescriptor,
    entries_by_id: dict[str, TimetableEntry],
) -> None:
    if notifier is None:
        return
    notified: set[str] = set()
    for entry_id in (descriptor.entry_key, descriptor.other_entry_key):
        entry = entries_by_id.get(entry_id) if entry_id else None
        if entry is None:
            continue
        lecturer = snapshot.lecturers_by_id.get(entry.lecturer_id)
        if lecturer is None or not lecturer.user_id or lecturer.user_id in notified:
            continue
        notified.add(lecturer.user_id)
        notifier.notify(lecturer.user_id, descriptor.type, entry.id, descriptor.description)


def refresh_entry_flags(db: Session, entry_ids: set[str] | list[str]) -> None:
    """Recompute has_conflict/conflict_type from the unresolved conflict rows."""
    for entry_id in entry_ids:
        entry = db.get(TimetableEntry, entry_id)
        if entry is None:
            continue
        first = db.execute(
            select(Conflict)
            .where(
                Conflict.resolved.is_(False),
                or_(Conflict.entry1_id == entry_id, Conflict.entry2_id == entry_id),
            )
            .order_by(Conflict.created_at, Conflict.id)
            .limit(1)
        ).scalar_one_or_none()
        entry.has_conflict = first is not None
        entry.conflict_type = first.type if first is not None else None


def clear_entry_conflicts(
    db: Session,
    entry_id: str,
    types: frozenset[ConflictType] | None = None,
) -> set[str]:
    """Delete conflict rows touching an entry, optionally only of ``types``.

    Returns the other entries that were involved in the deleted rows.
    """
    query = select(Conflict).where(or_(Conflict.entry1_id == entry_id, Conflict.entry2_id == entry_id))
    if types is not None:
        query = query.where(Conflict.type.in_(types))
    rows = db.execute(query).scalars().all()
    others: set[str] = set()
    for row in rows:
        for other_id in (row.entry1_id, row.entry2_id):
            if other_id and other_id != entry_id:
                others.add(other_id)
        db.delete(row)
    db.flush()
    return others


def _first_unresolved(db: Session, entry_id: str) -> Conflict | None:
    return db.execute(
        select(Conflict)
        .where(
            Conflict.resolved.is_(False),
            or_(Conflict.entry1_id == entry_id, Conflict.entry2_id == entry_id),
        )
        .order_by(Conflict.created_at, Conflict.id)
        .limit(1)
    ).scalar_one_or_none()


def record_entry_conflicts(
    db: Session,
    entry: TimetableEntry,
    *,
    snapshot: DomainSnapshot,
    notifier: ConflictNotifier | None = None,
) -> list[ConflictDescriptor]:
    """Incremental flow for a created or updated entry.

    Only the types listed in ``INCREMENTAL_CONFLICT_TYPES`` are re-detected here.
    Rows of other types stay until the next batch run.
    """
    db.flush()
    previous_others = clear_entry_conflicts(db, entry.id, INCREMENTAL_CONFLICT_TYPES)
    preserved = _first_unresolved(db, entry.id)

    term_entries = _term_entries(db, entry.academic_year, entry.semester)
    entries_by_id = {item.id: item for item in term_entries}
    detector = ConflictDetector(snapshot)
    candidate = EntryData.from_model(entry)
    descriptors = detector.check_entry_constraints(candidate) + detector.check_entry(
        candidate, [EntryData.from_model(item) for item in term_entries]
    )

    seen: set[ConflictKey] = set()
    recorded: list[ConflictDescriptor] = []
    for descriptor in descriptors:
        key = conflict_key(descriptor.type, entry.id, descriptor.other_entry_key)
        if key in seen:
            continue
        seen.add(key)
        recorded.append(descriptor)
        db.add(
            Conflict(
                entry1_id=entry.id,
                entry2_id=descriptor.other_entry_key,
                type=descriptor.type,
                description=descriptor.description,
                academic_year=entry.academic_year,
                semester=entry.semester,
            )
        )
        other = entries_by_id.get(descriptor.other_entry_key) if descriptor.other_entry_key else None
        if other is not None:
            other.has_conflict = True
            if other.conflict_type is None:
                other.conflict_type = descriptor.type
        _notify(notifier, snapshot, descriptor, entries_by_id)

    entry.has_conflict = bool(recorded) or preserved is not None
    if recorded:
        entry.conflict_type = recorded[0].type
    else:
        entry.conflict_type = preserved.type if preserved is not None else None
    db.flush()

    touched = previous_others - {item.other_entry_key for item in recorded}
    if touched:
        refresh_entry_flags(db, touched)

    if recorded:
        logger.info(
            "ENTRY CONFLICTS RECORDED | entry_id=%s | academic_year=%s | semester=%s | conflicts=%s",
            entry.id,
            entry.academic_year,
            entry.semester,
            len(recorded),
        )
    return recorded


def apply_batch_conflicts(
    db: Session,
    academic_year: str,
    semester: int,
    *,
    snapshot: DomainSnapshot,
    notifier: ConflictNotifier | None = None,
    max_courses_per_day: int = 3,
) -> list[Conflict]:
    """Re-run batch detection for a term and reconcile the stored conflict rows.

    Rows whose (type, entry pair) is still detected are kept, including their
    resolution state. Rows no longer detected are removed and new ones are
    inserted. Running it twice without changes leaves the rows untouched.
    """
    db.flush()
    entries = order_entries_for_batch(_term_entries(db, academic_year, semester), snapshot)
    entries_by_id = {entry.id: entry for entry in entries}
    detector = ConflictDetector(snapshot, max_courses_per_day=max_courses_per_day)
    descriptors = detector.validate_batch([EntryData.from_model(entry) for entry in entries])

    existing_rows = db.execute(
        select(Conflict).where(
            Conflict.academic_year == academic_year,
            Conflict.semester == semester,
        )
    ).scalars().all()
    existing_by_key: dict[ConflictKey, Conflict] = {}
    for row in existing_rows:
        if row.type in UNMANAGED_CONFLICT_TYPES:
            continue
        key = conflict_key(row.type, row.entry1_id, row.entry2_id)
        if key in existing_by_key:
            db.delete(row)
            continue
        existing_by_key[key] = row

    kept: dict[ConflictKey, Conflict] = {}
    first_type: dict[str, ConflictType] = {}
    created = 0
    for descriptor in descriptors:
        if descriptor.entry_key is None:
            continue
        key = conflict_key(descriptor.type, descriptor.entry_key, descriptor.other_entry_key)
        if key in kept:
            continue
        row = existing_by_key.get(key)
        if row is None:
            row = Conflict(
                entry1_id=descriptor.entry_key,
                entry2_id=descriptor.other_entry_key,
                type=descriptor.type,
                description=descriptor.description,
                academic_year=academic_year,
                semester=semester,
            )
            db.add(row)
            created += 1
            _notify(notifier, snapshot, descriptor, entries_by_id)
        kept[key] = row
        if not row.resolved:
            for entry_id in (descriptor.entry_key, descriptor.other_entry_key):
                if entry_id and entry_id not in first_type:
                    first_type[entry_id] = descriptor.type

    removed = 0
    for key, row in existing_by_key.items():
        if key not in kept:
            db.delete(row)
            removed += 1

    unmanaged_flags: set[str] = set()
    for row in existing_rows:
        if row.type in UNMANAGED_CONFLICT_TYPES and not row.resolved:
            unmanaged_flags.update(item for item in (row.entry1_id, row.entry2_id) if item)

    for entry in entries:
        conflict_type = first_type.get(entry.id)
        if conflict_type is None and entry.id in unmanaged_flags:
            conflict_type = ConflictType.MANUAL_REVIEW
        entry.has_conflict = conflict_type is not None
        entry.conflict_type = conflict_type
    db.flush()

    logger.info(
        "BATCH CONFLICT DETECTION | academic_year=%s | semester=%s | entries=%s | conflicts=%s | created=%s | removed=%s",
        academic_year,
        semester,
        len(entries),
        len(kept),
        created,
        removed,
    )
    return list(kept.values())
