from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import random
from threading import Lock
from time import perf_counter
from typing import Iterator

from sqlalchemy import delete
from sqlalchemy.orm import Session

from slotwise.core.config import Settings, get_settings
from slotwise.core.exceptions import GenerationError, GenerationInProgressError, MissingResourceError
from slotwise.models.timetable import Conflict, TimetableEntry
from slotwise.models.timetable_generation import TimetableGenerationSettings
from slotwise.schemas.generator import FitnessWeights, GenerationSettingsBase, GenerationSettingsOut
from slotwise.services.ai_generator import AIScheduleClient, build_prompt, parse_ai_response, validate_ai_schedule
from slotwise.services.conflict_recorder import apply_batch_conflicts
from slotwise.services.evolution_scheduler import EvolutionaryScheduler, SearchObserver, SearchResult
from slotwise.services.generation_metrics import METHOD_AI, METHOD_GENETIC, GenerationMonitor, new_job_id
from slotwise.services.notifications import ConflictNotifier, DatabaseConflictNotifier
from slotwise.services.snapshot import Chromosome, DomainSnapshot, load_domain_snapshot

logger = logging.getLogger(__name__)


class TermLockRegistry:
    """Non-blocking single-flight guard keyed by (academic_year, semester)."""

    def __init__(self) -> None:
        self._locks: dict[tuple[str, int], Lock] = {}
        self._guard = Lock()

    def _lock_for(self, academic_year: str, semester: int) -> Lock:
        with self._guard:
            return self._locks.setdefault((academic_year, semester), Lock())

    @contextmanager
    def hold(self, academic_year: str, semester: int) -> Iterator[None]:
        lock = self._lock_for(academic_year, semester)
        if not lock.acquire(blocking=False):
            raise GenerationInProgressError(academic_year, semester)
        try:
            yield
        finally:
            lock.release()

    def is_locked(self, academic_year: str, semester: int) -> bool:
        return self._lock_for(academic_year, semester).locked()


term_locks = TermLockRegistry()


def default_generation_settings(settings: Settings | None = None) -> GenerationSettingsBase:
    settings = settings or get_settings()
    return GenerationSettingsBase(max_courses_per_day=settings.max_courses_per_day)


def load_generation_settings(db: Session, settings: Settings | None = None) -> GenerationSettingsOut:
    """The stored row wins; without one the environment supplies the daily cap."""
    record = db.get(TimetableGenerationSettings, 1)
    if record is None:
        defaults = default_generation_settings(settings)
        return GenerationSettingsOut(id=1, **defaults.model_dump())
    return GenerationSettingsOut(
        id=record.id,
        population_size=record.population_size,
        generations=record.generations,
        mutation_rate=record.mutation_rate,
        crossover_rate=record.crossover_rate,
        elite_count=record.elite_count,
        tournament_size=record.tournament_size,
        stagnation_limit=record.stagnation_limit,
        max_placement_attempts=record.max_placement_attempts,
        max_courses_per_day=record.max_courses_per_day,
        evaluation_workers=record.evaluation_workers,
        random_seed=record.random_seed,
        fitness_weights=FitnessWeights.model_validate(record.fitness_weights or {}),
    )


def save_generation_settings(db: Session, payload: GenerationSettingsBase) -> GenerationSettingsOut:
    record = db.get(TimetableGenerationSettings, 1)
    data = payload.model_dump()
    if record is None:
        record = TimetableGenerationSettings(id=1, **data)
        db.add(record)
    else:
        for key, value in data.items():
            setattr(record, key, value)
    db.commit()
    db.refresh(record)
    return load_generation_settings(db)


@dataclass
class GenerationResult:
    academic_year: str
    semester: int
    method: str
    entries: list[TimetableEntry]
    conflicts: list[Conflict]
    stats: dict[str, int]
    fitness: float | None = None
    generations_run: int | None = None
    runtime_ms: int = 0
    job_id: str = field(default_factory=new_job_id)


def build_stats(snapshot: DomainSnapshot, entries: list[TimetableEntry]) -> dict[str, int]:
    return {
        "courses_scheduled": len({entry.course_id for entry in entries}),
        "rooms_used": len({entry.room_id for entry in entries}),
        "lecturers_assigned": len({entry.lecturer_id for entry in entries}),
        "time_slots_available": len(snapshot.slots),
    }


class TimetableGenerationService:
    def __init__(
        self,
        db: Session,
        *,
        ai_client: AIScheduleClient | None = None,
        monitor: GenerationMonitor | None = None,
        notifier: ConflictNotifier | None = None,
        settings: Settings | None = None,
        generation_settings: GenerationSettingsBase | None = None,
        rng: random.Random | None = None,
        observer: SearchObserver | None = None,
        locks: TermLockRegistry | None = None,
    ) -> None:
        self.db = db
        self.ai_client = ai_client
        self.monitor = monitor or GenerationMonitor(db)
        self.notifier = notifier or DatabaseConflictNotifier(db)
        self.settings = settings or get_settings()
        self.generation_settings = generation_settings
        self.rng = rng
        self.observer = observer
        self.locks = locks or term_locks

    def generate(self, academic_year: str, semester: int) -> GenerationResult:
        started = perf_counter()
        logger.info(
            "TIMETABLE GENERATION START | academic_year=%s | semester=%s",
            academic_year,
            semester,
        )
        with self.locks.hold(academic_year, semester):
            try:
                snapshot = load_domain_snapshot(self.db, academic_year, semester, self.settings.working_days)
                run_settings = self.generation_settings or load_generation_settings(self.db, self.settings)
            except MissingResourceError:
                raise
            except Exception as exc:
                self.db.rollback()
                logger.exception(
                    "TIMETABLE GENERATION FAILED | academic_year=%s | semester=%s | stage=inputs",
                    academic_year,
                    semester,
                )
                raise GenerationError("Failed to load timetable generation inputs", cause=exc) from exc
            logger.info(
                "TIMETABLE GENERATION INPUT | academic_year=%s | semester=%s | courses=%s | rooms=%s | lecturers=%s | time_slots=%s",
                academic_year,
                semester,
                len(snapshot.courses),
                len(snapshot.rooms),
                len(snapshot.lecturers),
                len(snapshot.slots),
            )

            method = METHOD_AI
            search: SearchResult | None = None
            chromosome = self._attempt_ai(snapshot, run_settings)
            if chromosome is None:
                method = METHOD_GENETIC
                search_started = perf_counter()
                try:
                    search = self._run_search(snapshot, run_settings)
                except Exception as exc:
                    self._record_failure(method, perf_counter() - search_started, exc, academic_year, semester)
                    logger.exception(
                        "TIMETABLE GENERATION FAILED | academic_year=%s | semester=%s | stage=search",
                        academic_year,
                        semester,
                    )
                    raise GenerationError("Timetable generation failed", cause=exc) from exc
                chromosome = search.best

            try:
                entries, conflicts = self._commit(snapshot, chromosome, run_settings.max_courses_per_day)
            except Exception as exc:
                self.db.rollback()
                self._record_failure(method, perf_counter() - started, exc, academic_year, semester)
                logger.exception(
                    "TIMETABLE GENERATION FAILED | academic_year=%s | semester=%s | stage=commit | method=%s",
                    academic_year,
                    semester,
                    method,
                )
                raise GenerationError("Failed to save generated timetable", cause=exc) from exc

            duration = perf_counter() - started
            result = GenerationResult(
                academic_year=academic_year,
                semester=semester,
                method=method,
                entries=entries,
                conflicts=conflicts,
                stats=build_stats(snapshot, entries),
                fitness=search.fitness if search is not None else None,
                generations_run=search.generations_run if search is not None else None,
                runtime_ms=int(duration * 1000),
            )
            self.monitor.record_attempt(
                method=method,
                duration=duration,
                success=True,
                entries_generated=len(entries),
                conflicts_count=len(conflicts),
                academic_year=academic_year,
                semester=semester,
                job_id=result.job_id,
            )
            logger.info(
                "TIMETABLE GENERATION COMPLETE | academic_year=%s | semester=%s | method=%s | entries=%s | conflicts=%s | runtime_ms=%s",
                academic_year,
                semester,
                method,
                len(entries),
                len(conflicts),
                result.runtime_ms,
            )
            return result

    def _should_attempt_ai(self, academic_year: str, semester: int) -> bool:
        if self.ai_client is None:
            return False
        if not self.settings.generation_honor_recommendation:
            return True
        recommended = self.monitor.recommend_method(academic_year, semester)
        if recommended == METHOD_GENETIC:
            logger.info(
                "TIMETABLE GENERATION STRATEGY | academic_year=%s | semester=%s | recommendation=%s | ai=skipped",
                academic_year,
                semester,
                recommended,
            )
            return False
        return True

    def _attempt_ai(self, snapshot: DomainSnapshot, run_settings: GenerationSettingsBase) -> Chromosome | None:
        academic_year, semester = snapshot.academic_year, snapshot.semester
        if not self._should_attempt_ai(academic_year, semester):
            return None
        started = perf_counter()
        try:
            prompt = build_prompt(snapshot, academic_year, semester, run_settings.max_courses_per_day)
            content = self.ai_client.complete(prompt)
            payload = parse_ai_response(content)
            chromosome = validate_ai_schedule(payload, snapshot)
        except Exception as exc:
            logger.warning(
                "TIMETABLE GENERATION AI FALLBACK | academic_year=%s | semester=%s | reason=%s",
                academic_year,
                semester,
                exc,
                exc_info=True,
            )
            self._record_failure(METHOD_AI, perf_counter() - started, exc, academic_year, semester)
            return None
        logger.info(
            "TIMETABLE GENERATION AI ACCEPTED | academic_year=%s | semester=%s | entries=%s",
            academic_year,
            semester,
            len(chromosome),
        )
        return chromosome

    def _run_search(self, snapshot: DomainSnapshot, run_settings: GenerationSettingsBase) -> SearchResult:
        rng = self.rng if self.rng is not None else random.Random(run_settings.random_seed)
        scheduler = EvolutionaryScheduler(
            snapshot=snapshot,
            settings=GenerationSettingsBase.model_validate(run_settings.model_dump()),
            rng=rng,
            observer=self.observer,
        )
        return scheduler.run()

    def _commit(
        self,
        snapshot: DomainSnapshot,
        chromosome: Chromosome,
        max_courses_per_day: int,
    ) -> tuple[list[TimetableEntry], list[Conflict]]:
        db = self.db
        academic_year, semester = snapshot.academic_year, snapshot.semester
        db.execute(
            delete(Conflict).where(
                Conflict.academic_year == academic_year,
                Conflict.semester == semester,
            )
        )
        db.execute(
            delete(TimetableEntry).where(
                TimetableEntry.academic_year == academic_year,
                TimetableEntry.semester == semester,
            )
        )
        entries = [
            TimetableEntry(
                course_id=gene.course_id,
                room_id=gene.room_id,
                lecturer_id=gene.lecturer_id,
                day=gene.day,
                time_slot_id=gene.time_slot_id,
                academic_year=academic_year,
                semester=semester,
                has_conflict=False,
            )
            for gene in chromosome
        ]
        db.add_all(entries)
        db.flush()
        conflicts = apply_batch_conflicts(
            db,
            academic_year,
            semester,
            snapshot=snapshot,
            notifier=self.notifier,
            max_courses_per_day=max_courses_per_day,
        )
        db.commit()
        return entries, conflicts

    def _record_failure(
        self,
        method: str,
        duration: float,
        exc: BaseException,
        academic_year: str,
        semester: int,
    ) -> None:
        self.monitor.record_attempt(
            method=method,
            duration=duration,
            success=False,
            error_message=str(exc),
            academic_year=academic_year,
            semester=semester,
        )
