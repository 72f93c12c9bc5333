from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from slotwise.db.base import Base


class TimetableGenerationSettings(Base):
    __tablename__ = "timetable_generation_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    population_size: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    generations: Mapped[int] = mapped_column(Integer, nullable=False, default=150)
    mutation_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.15)
    crossover_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.8)
    elite_count: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    tournament_size: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    stagnation_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    max_placement_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    max_courses_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    evaluation_workers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    random_seed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fitness_weights: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TimetableGenerationMetric(Base):
    __tablename__ = "timetable_generation_metrics"
    __table_args__ = (
        Index("ix_timetable_generation_metrics_method_success", "method", "success"),
        Index("ix_timetable_generation_metrics_term", "academic_year", "semester"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    method: Mapped[str] = mapped_column(String(40), nullable=False, default="unknown")
    duration_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    entries_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conflicts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    academic_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
