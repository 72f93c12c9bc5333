from __future__ import annotations

from collections import defaultdict
import random
from typing import Literal

from slotwise.core.exceptions import SchedulerError
from slotwise.services.snapshot import Chromosome, CourseData, DomainSnapshot, Gene, LecturerData, RoomData, SlotData

GeneAttribute = Literal["room", "lecturer", "day", "time_slot"]
GENE_ATTRIBUTES: tuple[GeneAttribute, ...] = ("room", "lecturer", "day", "time_slot")


class PlacementExhausted(SchedulerError):
    """Raised by the strict pass when a course cannot be placed within the attempt budget."""

    def __init__(self, course_id: str, attempts: int):
        super().__init__(
            f"No valid placement found for course {course_id} after {attempts} attempts",
            details={"course_id": course_id, "attempts": attempts},
        )
        self.course_id = course_id
        self.attempts = attempts


class ScheduleGenerator:
    """Builds random candidate chromosomes, one gene per course in snapshot order."""

    def __init__(
        self,
        snapshot: DomainSnapshot,
        rng: random.Random,
        *,
        max_courses_per_day: int = 3,
        max_attempts: int = 50,
    ) -> None:
        self.snapshot = snapshot
        self.random = rng
        self.max_courses_per_day = max_courses_per_day
        self.max_attempts = max_attempts
        self._room_candidates: dict[str, tuple[RoomData, ...]] = {}
        self._lecturer_candidates: dict[str, tuple[LecturerData, ...]] = {}

    def room_candidates(self, course: CourseData) -> tuple[RoomData, ...]:
        cached = self._room_candidates.get(course.id)
        if cached is not None:
            return cached
        rooms = tuple(
            room
            for room in self.snapshot.rooms
            if room.capacity >= course.enrollment_count
            and (not room.department or room.department == course.department)
            and (room.is_lab or not course.requires_lab)
        )
        self._room_candidates[course.id] = rooms
        return rooms

    def lecturer_candidates(self, course: CourseData) -> tuple[LecturerData, ...]:
        cached = self._lecturer_candidates.get(course.id)
        if cached is not None:
            return cached
        lecturers = tuple(
            lecturer
            for lecturer in self.snapshot.lecturers
            if lecturer.id == course.lecturer_id or lecturer.department == course.department
        )
        self._lecturer_candidates[course.id] = lecturers
        return lecturers

    def strict_pass(self) -> Chromosome:
        room_used: set[tuple[str, str, int]] = set()
        lecturer_used: set[tuple[str, str, int]] = set()
        daily_load: dict[tuple[str, str], int] = defaultdict(int)
        genes: list[Gene] = []

        for course in self.snapshot.courses:
            rooms = self.room_candidates(course)
            lecturers = self.lecturer_candidates(course)
            if not rooms or not lecturers:
                raise PlacementExhausted(course.id, 0)

            placed: Gene | None = None
            for _attempt in range(self.max_attempts):
                room = self.random.choice(rooms)
                lecturer = self.random.choice(lecturers)
                day = self.random.choice(self.snapshot.days)
                slot = self.random.choice(self.snapshot.slots)
                if not lecturer.is_available(day, slot.start, slot.end):
                    continue
                room_key = (room.id, day, slot.id)
                lecturer_key = (lecturer.id, day, slot.id)
                if room_key in room_used or lecturer_key in lecturer_used:
                    continue
                if daily_load[(lecturer.id, day)] >= self.max_courses_per_day:
                    continue
                room_used.add(room_key)
                lecturer_used.add(lecturer_key)
                daily_load[(lecturer.id, day)] += 1
                placed = Gene(course.id, room.id, lecturer.id, day, slot.id)
                break

            if placed is None:
                raise PlacementExhausted(course.id, self.max_attempts)
            genes.append(placed)

        return tuple(genes)

    def relaxed_pass(self) -> Chromosome:
        genes: list[Gene] = []
        for course in self.snapshot.courses:
            room = self.random.choice(self.snapshot.rooms)
            lecturer = self.random.choice(self.snapshot.lecturers)
            day = self.random.choice(self.snapshot.days)
            slot = self.random.choice(self.snapshot.slots)
            genes.append(Gene(course.id, room.id, lecturer.id, day, slot.id))
        return tuple(genes)

    def generate(self, relax_constraints: bool = False) -> Chromosome:
        if relax_constraints:
            return self.relaxed_pass()
        try:
            return self.strict_pass()
        except PlacementExhausted:
            return self.relaxed_pass()

    def random_gene(self, course: CourseData, attribute: GeneAttribute, gene: Gene) -> Gene:
        """Replace one attribute of ``gene`` with a fresh filtered random choice."""
        if attribute == "room":
            rooms = self.room_candidates(course) or self.snapshot.rooms
            return gene.replace(room_id=self.random.choice(rooms).id)
        if attribute == "lecturer":
            lecturers = self.lecturer_candidates(course) or self.snapshot.lecturers
            return gene.replace(lecturer_id=self.random.choice(lecturers).id)

        lecturer = self.snapshot.lecturers_by_id.get(gene.lecturer_id)
        if attribute == "day":
            slot = self.snapshot.slots_by_id.get(gene.time_slot_id)
            days = list(self.snapshot.days)
            if lecturer is not None and slot is not None and lecturer.declares_availability:
                days = [day for day in days if lecturer.is_available(day, slot.start, slot.end)] or days
            return gene.replace(day=self.random.choice(days))
        if attribute == "time_slot":
            slots = list(self.snapshot.slots)
            if lecturer is not None and lecturer.declares_availability:
                slots = [slot for slot in slots if lecturer.is_available(gene.day, slot.start, slot.end)] or slots
            return gene.replace(time_slot_id=self.random.choice(slots).id)
        raise ValueError(f"Unknown gene attribute '{attribute}'")
