from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from slotwise.schemas.generator import FitnessWeights
from slotwise.services.snapshot import Chromosome, DomainSnapshot

# Below this share of its seats a room counts as under-used.
UNDERUSED_ROOM_RATIO = 0.4


@dataclass(frozen=True)
class FitnessBreakdown:
    score: float
    room_conflicts: int = 0
    lecturer_conflicts: int = 0
    daily_overloads: int = 0
    capacity_shortfalls: int = 0
    department_mismatches: int = 0
    availability_violations: int = 0
    availability_matches: int = 0
    missing_references: int = 0
    lecturer_overloads: int = 0
    room_underuses: int = 0

    @property
    def hard_violations(self) -> int:
        return (
            self.room_conflicts
            + self.lecturer_conflicts
            + self.daily_overloads
            + self.capacity_shortfalls
            + self.availability_violations
            + self.missing_references
        )


class FitnessEvaluator:
    """Scores chromosomes against a read-only snapshot. Higher is better, never below zero."""

    def __init__(
        self,
        snapshot: DomainSnapshot,
        weights: FitnessWeights | None = None,
        *,
        max_courses_per_day: int = 3,
    ) -> None:
        self.snapshot = snapshot
        self.weights = weights or FitnessWeights()
        self.max_courses_per_day = max_courses_per_day
        self.eval_cache: dict[Chromosome, FitnessBreakdown] = {}

    def evaluate(self, chromosome: Chromosome) -> float:
        return self.breakdown(chromosome).score

    def breakdown(self, chromosome: Chromosome) -> FitnessBreakdown:
        key = tuple(chromosome)
        cached = self.eval_cache.get(key)
        if cached is not None:
            return cached
        result = self._score(key)
        self.eval_cache[key] = result
        return result

    def _score(self, chromosome: Chromosome) -> FitnessBreakdown:
        snapshot = self.snapshot
        room_seen: set[tuple[str, str, int]] = set()
        lecturer_seen: set[tuple[str, str, int]] = set()
        daily_load: dict[tuple[str, str], int] = defaultdict(int)

        room_conflicts = 0
        lecturer_conflicts = 0
        daily_overloads = 0
        capacity_shortfalls = 0
        department_mismatches = 0
        availability_violations = 0
        availability_matches = 0
        missing_references = 0
        lecturer_overloads = 0
        room_underuses = 0
        lecturer_load: dict[str, int] = defaultdict(int)

        for gene in chromosome:
            course = snapshot.courses_by_id.get(gene.course_id)
            room = snapshot.rooms_by_id.get(gene.room_id)
            lecturer = snapshot.lecturers_by_id.get(gene.lecturer_id)
            slot = snapshot.slots_by_id.get(gene.time_slot_id)
            if course is None or room is None or lecturer is None or slot is None:
                missing_references += 1
                continue

            room_key = (room.id, gene.day, slot.id)
            if room_key in room_seen:
                room_conflicts += 1
            room_seen.add(room_key)

            lecturer_key = (lecturer.id, gene.day, slot.id)
            if lecturer_key in lecturer_seen:
                lecturer_conflicts += 1
            lecturer_seen.add(lecturer_key)

            daily_load[(lecturer.id, gene.day)] += 1
            if daily_load[(lecturer.id, gene.day)] > self.max_courses_per_day:
                daily_overloads += 1

            lecturer_load[lecturer.id] += 1
            if lecturer_load[lecturer.id] > lecturer.max_courses:
                lecturer_overloads += 1

            if course.enrollment_count > room.capacity:
                capacity_shortfalls += 1
            elif course.enrollment_count < room.capacity * UNDERUSED_ROOM_RATIO:
                room_underuses += 1

            if room.department and room.department != course.department:
                department_mismatches += 1
            # The course's assigned lecturer is never counted as a mismatch.
            if lecturer.id != course.lecturer_id and lecturer.department != course.department:
                department_mismatches += 1

            if lecturer.declares_availability:
                if lecturer.is_available(gene.day, slot.start, slot.end):
                    availability_matches += 1
                else:
                    availability_violations += 1

        weights = self.weights
        score = (
            weights.base_score
            - room_conflicts * weights.room_conflict
            - lecturer_conflicts * weights.lecturer_conflict
            - daily_overloads * weights.daily_load
            - capacity_shortfalls * weights.capacity
            - department_mismatches * weights.department_mismatch
            - availability_violations * weights.availability
            - missing_references * weights.missing_reference
            - lecturer_overloads * weights.lecturer_overload
            - room_underuses * weights.room_underuse
            + availability_matches * weights.availability_bonus
        )
        return FitnessBreakdown(
            score=max(0.0, float(score)),
            room_conflicts=room_conflicts,
            lecturer_conflicts=lecturer_conflicts,
            daily_overloads=daily_overloads,
            capacity_shortfalls=capacity_shortfalls,
            department_mismatches=department_mismatches,
            availability_violations=availability_violations,
            availability_matches=availability_matches,
            missing_references=missing_references,
            lecturer_overloads=lecturer_overloads,
            room_underuses=room_underuses,
        )
