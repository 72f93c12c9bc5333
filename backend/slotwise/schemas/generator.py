from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from slotwise.schemas.timetable import TimetableEntryOut
from slotwise.schemas.conflict import ConflictOut


class FitnessWeights(BaseModel):
    base_score: float = Field(default=1000.0, ge=1.0, le=1_000_000.0)
    room_conflict: float = Field(default=50.0, ge=0.0, le=10_000.0)
    lecturer_conflict: float = Field(default=50.0, ge=0.0, le=10_000.0)
    daily_load: float = Field(default=30.0, ge=0.0, le=10_000.0)
    capacity: float = Field(default=20.0, ge=0.0, le=10_000.0)
    department_mismatch: float = Field(default=10.0, ge=0.0, le=10_000.0)
    availability: float = Field(default=40.0, ge=0.0, le=10_000.0)
    availability_bonus: float = Field(default=5.0, ge=0.0, le=1_000.0)
    missing_reference: float = Field(default=100.0, ge=0.0, le=10_000.0)
    lecturer_overload: float = Field(default=15.0, ge=0.0, le=10_000.0)
    room_underuse: float = Field(default=0.0, ge=0.0, le=10_000.0)


GenerationMethod = Literal["ai_optimizer", "genetic_algorithm"]


class GenerationSettingsBase(BaseModel):
    population_size: int = Field(default=100, ge=2, le=2000)
    generations: int = Field(default=150, ge=1, le=5000)
    mutation_rate: float = Field(default=0.15, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    elite_count: int = Field(default=10, ge=0, le=200)
    tournament_size: int = Field(default=5, ge=1, le=100)
    stagnation_limit: int = Field(default=20, ge=1, le=1000)
    max_placement_attempts: int = Field(default=50, ge=1, le=10_000)
    max_courses_per_day: int = Field(default=3, ge=1, le=24)
    evaluation_workers: int = Field(default=1, ge=1, le=64)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    fitness_weights: FitnessWeights = Field(default_factory=FitnessWeights)

    @model_validator(mode="after")
    def validate_relationships(self) -> "GenerationSettingsBase":
        if self.elite_count >= self.population_size:
            raise ValueError("elite_count must be less than population_size")
        if self.tournament_size > self.population_size:
            raise ValueError("tournament_size cannot exceed population_size")
        return self


class GenerationSettingsUpdate(GenerationSettingsBase):
    pass


class GenerationSettingsOut(GenerationSettingsBase):
    id: int


class GenerateTimetableRequest(BaseModel):
    academic_year: str = Field(min_length=4, max_length=20)
    semester: int = Field(ge=1, le=3)
    settings_override: GenerationSettingsBase | None = None


class GenerationStats(BaseModel):
    courses_scheduled: int
    rooms_used: int
    lecturers_assigned: int
    time_slots_available: int


class GenerateTimetableResponse(BaseModel):
    academic_year: str
    semester: int
    method: GenerationMethod
    fitness: float | None = None
    generations_run: int | None = None
    entries: list[TimetableEntryOut]
    conflicts: list[ConflictOut]
    stats: GenerationStats
    runtime_ms: int


class MethodPerformance(BaseModel):
    success_rate: float = 0.0
    avg_duration: float = 0.0
    avg_conflicts: float = 0.0
    avg_entries: float = 0.0
    total_attempts: int = 0


class GenerationFailureOut(BaseModel):
    job_id: str
    method: str
    error_message: str | None = None
    academic_year: str | None = None
    semester: int | None = None
    timestamp: datetime | None = None


class GenerationMetricsResponse(BaseModel):
    performance: dict[str, MethodPerformance]
    recent_failures: list[GenerationFailureOut] = Field(default_factory=list)


class MethodRecommendation(BaseModel):
    academic_year: str
    semester: int
    recommended_method: GenerationMethod
