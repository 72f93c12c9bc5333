from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from slotwise.models.timetable import ConflictType
from slotwise.schemas.settings import minutes_to_time
from slotwise.services.snapshot import CourseData, DomainSnapshot, EntryData, LecturerData, RoomData, SlotData


@dataclass(frozen=True)
class ConflictDescriptor:
    type: ConflictType
    description: str
    entry_key: str | None
    other_entry_key: str | None = None


@dataclass(frozen=True)
class AlternativeSlot:
    day: str
    time_slot_id: int
    room_id: str
    score: float
    reason: str


def _slot_label(slot: SlotData | None, fallback: int | None = None) -> str:
    if slot is None:
        return f"slot {fallback}"
    return f"{minutes_to_time(slot.start)}-{minutes_to_time(slot.end)}"


def _proximity_score(candidate: SlotData, original: SlotData | None) -> float:
    if original is None:
        return 0.0
    hours = abs(candidate.start - original.start) / 60
    if hours <= 1:
        return 15.0
    if hours <= 2:
        return 10.0
    if hours <= 3:
        return 5.0
    return 0.0


class ConflictDetector:
    """Finds scheduling conflicts. Conflicting data is reported, never raised."""

    def __init__(self, snapshot: DomainSnapshot, *, max_courses_per_day: int = 3) -> None:
        self.snapshot = snapshot
        self.max_courses_per_day = max_courses_per_day

    def _resolve(
        self, entry: EntryData
    ) -> tuple[CourseData | None, RoomData | None, LecturerData | None, SlotData | None]:
        snapshot = self.snapshot
        course = snapshot.courses_by_id.get(entry.course_id) if entry.course_id else None
        room = snapshot.rooms_by_id.get(entry.room_id) if entry.room_id else None
        lecturer = snapshot.lecturers_by_id.get(entry.lecturer_id) if entry.lecturer_id else None
        slot = snapshot.slots_by_id.get(entry.time_slot_id) if entry.time_slot_id is not None else None
        return course, room, lecturer, slot

    def _room_name(self, room_id: str | None) -> str:
        room = self.snapshot.rooms_by_id.get(room_id) if room_id else None
        return room.name if room else str(room_id)

    def _lecturer_name(self, lecturer_id: str | None) -> str:
        lecturer = self.snapshot.lecturers_by_id.get(lecturer_id) if lecturer_id else None
        return lecturer.name if lecturer else str(lecturer_id)

    @staticmethod
    def _same_term(entry: EntryData, other: EntryData) -> bool:
        return entry.academic_year == other.academic_year and entry.semester == other.semester

    def check_entry(self, entry: EntryData, existing: Iterable[EntryData | None]) -> list[ConflictDescriptor]:
        """Incremental mode: compare one entry with the term's entries sharing its day and slot."""
        conflicts: list[ConflictDescriptor] = []
        slot_label = _slot_label(self.snapshot.slots_by_id.get(entry.time_slot_id), entry.time_slot_id)
        for other in existing:
            # Entries removed concurrently arrive as None.
            if other is None:
                continue
            if entry.key is not None and other.key == entry.key:
                continue
            if not self._same_term(entry, other):
                continue
            if other.day != entry.day or other.time_slot_id != entry.time_slot_id:
                continue
            if other.room_id == entry.room_id:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.ROOM,
                        description=f"Room {self._room_name(entry.room_id)} is double-booked on {entry.day} at {slot_label}.",
                        entry_key=entry.key,
                        other_entry_key=other.key,
                    )
                )
            if other.lecturer_id == entry.lecturer_id:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.LECTURER,
                        description=(
                            f"Lecturer {self._lecturer_name(entry.lecturer_id)} is scheduled for two classes "
                            f"on {entry.day} at {slot_label}."
                        ),
                        entry_key=entry.key,
                        other_entry_key=other.key,
                    )
                )
        return conflicts

    def _placement_conflicts(
        self,
        entry: EntryData,
        course: CourseData,
        room: RoomData,
        lecturer: LecturerData,
        slot: SlotData,
    ) -> list[ConflictDescriptor]:
        conflicts: list[ConflictDescriptor] = []
        if room.capacity < course.enrollment_count:
            conflicts.append(
                ConflictDescriptor(
                    type=ConflictType.CAPACITY,
                    description=(
                        f"Room {room.name} capacity ({room.capacity}) is insufficient for course "
                        f"{course.code} (enrolled: {course.enrollment_count})"
                    ),
                    entry_key=entry.key,
                )
            )
        if lecturer.declares_availability and not lecturer.is_available(entry.day, slot.start, slot.end):
            conflicts.append(
                ConflictDescriptor(
                    type=ConflictType.AVAILABILITY,
                    description=f"Lecturer {lecturer.name} is not available on {entry.day} at {_slot_label(slot)}",
                    entry_key=entry.key,
                )
            )
        return conflicts

    def check_entry_constraints(self, entry: EntryData) -> list[ConflictDescriptor]:
        """CAPACITY and AVAILABILITY for one entry; unresolvable references yield nothing."""
        course, room, lecturer, slot = self._resolve(entry)
        if course is None or room is None or lecturer is None or slot is None or not entry.day:
            return []
        return self._placement_conflicts(entry, course, room, lecturer, slot)

    def validate_batch(self, entries: Iterable[EntryData]) -> list[ConflictDescriptor]:
        """Batch mode: walk the entries in order, flagging collisions against earlier occupants."""
        conflicts: list[ConflictDescriptor] = []
        room_bucket: dict[tuple[str, int], dict[str, list[str | None]]] = defaultdict(lambda: defaultdict(list))
        lecturer_bucket: dict[tuple[str, int], dict[str, list[str | None]]] = defaultdict(lambda: defaultdict(list))
        daily_count: dict[tuple[str, str], int] = defaultdict(int)

        for entry in entries:
            course, room, lecturer, slot = self._resolve(entry)
            if course is None or room is None or lecturer is None or slot is None or not entry.day:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.INVALID_ENTRY,
                        description="Missing or invalid course, room, lecturer, or time slot",
                        entry_key=entry.key,
                    )
                )
                continue

            slot_label = _slot_label(slot)
            conflicts.extend(self._placement_conflicts(entry, course, room, lecturer, slot))

            daily_key = (lecturer.id, entry.day)
            daily_count[daily_key] += 1
            if daily_count[daily_key] > self.max_courses_per_day:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.MAX_COURSES,
                        description=(
                            f"Lecturer {lecturer.name} exceeds max courses per day "
                            f"({self.max_courses_per_day}) on {entry.day}"
                        ),
                        entry_key=entry.key,
                    )
                )

            bucket_key = (entry.day, slot.id)
            room_occupants = room_bucket[bucket_key][room.id]
            for occupant in room_occupants:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.ROOM,
                        description=f"Room {room.name} is already scheduled on {entry.day} at {slot_label}",
                        entry_key=entry.key,
                        other_entry_key=occupant,
                    )
                )
            room_occupants.append(entry.key)

            lecturer_occupants = lecturer_bucket[bucket_key][lecturer.id]
            for occupant in lecturer_occupants:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.LECTURER,
                        description=f"Lecturer {lecturer.name} is already scheduled on {entry.day} at {slot_label}",
                        entry_key=entry.key,
                        other_entry_key=occupant,
                    )
                )
            lecturer_occupants.append(entry.key)

        return conflicts

    def list_conflicts(self, candidate: EntryData, existing: Iterable[EntryData | None]) -> list[ConflictDescriptor]:
        """Administrative mode: interval overlap plus cohort and prerequisite checks."""
        course, room, lecturer, slot = self._resolve(candidate)
        if course is None or room is None or lecturer is None or slot is None or not candidate.day:
            return [
                ConflictDescriptor(
                    type=ConflictType.INVALID_ENTRY,
                    description="Missing or invalid course, room, lecturer, or time slot",
                    entry_key=candidate.key,
                )
            ]

        conflicts: list[ConflictDescriptor] = []
        slot_label = _slot_label(slot)
        if room.capacity < course.enrollment_count:
            conflicts.append(
                ConflictDescriptor(
                    type=ConflictType.CAPACITY,
                    description=(
                        f"Room {room.name} capacity ({room.capacity}) is insufficient for course "
                        f"{course.code} (enrolled: {course.enrollment_count})"
                    ),
                    entry_key=candidate.key,
                )
            )
        if lecturer.declares_availability and not lecturer.is_available(candidate.day, slot.start, slot.end):
            conflicts.append(
                ConflictDescriptor(
                    type=ConflictType.AVAILABILITY,
                    description=f"Lecturer {lecturer.name} is not available on {candidate.day} at {slot_label}",
                    entry_key=candidate.key,
                )
            )

        term_entries = [
            other
            for other in existing
            if other is not None
            and self._same_term(candidate, other)
            and (candidate.key is None or other.key != candidate.key)
        ]
        for other in term_entries:
            if other.day != candidate.day:
                continue
            other_slot = self.snapshot.slots_by_id.get(other.time_slot_id) if other.time_slot_id is not None else None
            if other_slot is None or not slot.overlaps(other_slot):
                continue
            other_label = _slot_label(other_slot)
            if other.room_id == room.id:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.ROOM,
                        description=f"Room {room.name} is double-booked on {candidate.day} ({slot_label} overlaps {other_label}).",
                        entry_key=candidate.key,
                        other_entry_key=other.key,
                    )
                )
            if other.lecturer_id == lecturer.id:
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.LECTURER,
                        description=(
                            f"Lecturer {lecturer.name} is scheduled for two classes on {candidate.day} "
                            f"({slot_label} overlaps {other_label})."
                        ),
                        entry_key=candidate.key,
                        other_entry_key=other.key,
                    )
                )
            other_course = self.snapshot.courses_by_id.get(other.course_id) if other.course_id else None
            if (
                other_course is not None
                and other_course.department == course.department
                and other_course.year_level == course.year_level
            ):
                conflicts.append(
                    ConflictDescriptor(
                        type=ConflictType.STUDENT_GROUP,
                        description=(
                            f"{course.department} year {course.year_level} students have {course.code} and "
                            f"{other_course.code} at the same time on {candidate.day}."
                        ),
                        entry_key=candidate.key,
                        other_entry_key=other.key,
                    )
                )

        scheduled_courses = {other.course_id for other in term_entries}
        for prerequisite_id in course.prerequisite_ids:
            if prerequisite_id in scheduled_courses:
                continue
            prerequisite = self.snapshot.courses_by_id.get(prerequisite_id)
            label = prerequisite.code if prerequisite else prerequisite_id
            conflicts.append(
                ConflictDescriptor(
                    type=ConflictType.PREREQUISITE,
                    description=f"Prerequisite {label} for {course.code} is not scheduled in this term.",
                    entry_key=candidate.key,
                )
            )

        return conflicts

    def validate_assignment(self, candidate: EntryData, existing: Iterable[EntryData | None]) -> bool:
        return not self.list_conflicts(candidate, existing)

    def suggest_alternatives(
        self,
        entry: EntryData,
        existing: Iterable[EntryData | None],
        limit: int = 5,
    ) -> list[AlternativeSlot]:
        """Rank free (day, slot, room) placements for an entry, best first."""
        course, current_room, lecturer, current_slot = self._resolve(entry)
        if course is None:
            return []

        room_busy: set[tuple[str, str, int]] = set()
        lecturer_busy: set[tuple[str, int]] = set()
        for other in existing:
            if other is None or other.key == entry.key or not self._same_term(entry, other):
                continue
            if other.day is None or other.time_slot_id is None:
                continue
            if other.room_id:
                room_busy.add((other.room_id, other.day, other.time_slot_id))
            if lecturer is not None and other.lecturer_id == lecturer.id:
                lecturer_busy.add((other.day, other.time_slot_id))

        day_order = {day: index for index, day in enumerate(self.snapshot.days)}
        suggestions: list[AlternativeSlot] = []
        for day in self.snapshot.days:
            for slot in self.snapshot.slots:
                if (day, slot.id) in lecturer_busy:
                    continue
                lecturer_free = lecturer is None or lecturer.is_available(day, slot.start, slot.end)
                for room in self.snapshot.rooms:
                    if day == entry.day and slot.id == entry.time_slot_id and room.id == entry.room_id:
                        continue
                    if (room.id, day, slot.id) in room_busy:
                        continue
                    reasons: list[str] = []
                    score = 0.0
                    if lecturer_free:
                        score += 30
                        reasons.append("Lecturer is available")
                    if room.capacity >= course.enrollment_count:
                        score += 20
                        reasons.append("Room capacity is suitable")
                    proximity = _proximity_score(slot, current_slot)
                    if proximity:
                        score += proximity
                        reasons.append("Close to the original time")
                    if day == entry.day:
                        score += 10
                        reasons.append("Same day")
                    if current_room is not None and room.building == current_room.building:
                        score += 5
                        reasons.append("Same building")
                    if score <= 0:
                        continue
                    suggestions.append(
                        AlternativeSlot(
                            day=day,
                            time_slot_id=slot.id,
                            room_id=room.id,
                            score=score,
                            reason=", ".join(reasons),
                        )
                    )

        slot_starts = {slot.id: slot.start for slot in self.snapshot.slots}
        suggestions.sort(
            key=lambda item: (-item.score, day_order[item.day], slot_starts[item.time_slot_id], item.room_id)
        )
        return suggestions[:limit]
