from __future__ import annotations

import logging
import uuid

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotwise.models.timetable_generation import TimetableGenerationMetric

logger = logging.getLogger(__name__)

METHOD_AI = "ai_optimizer"
METHOD_GENETIC = "genetic_algorithm"
KNOWN_METHODS = (METHOD_AI, METHOD_GENETIC)

MIN_ATTEMPTS_FOR_COMPARISON = 10
SUCCESS_RATE_GAP = 20.0
TERM_FAILURE_THRESHOLD = 2


def new_job_id() -> str:
    return f"timetable_{uuid.uuid4().hex}"


def _empty_method_metrics() -> dict[str, float | int]:
    return {
        "success_rate": 0.0,
        "avg_duration": 0.0,
        "avg_conflicts": 0.0,
        "avg_entries": 0.0,
        "total_attempts": 0,
    }


class GenerationMonitor:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record_attempt(
        self,
        *,
        method: str,
        duration: float,
        success: bool,
        entries_generated: int = 0,
        conflicts_count: int = 0,
        error_message: str | None = None,
        academic_year: str | None = None,
        semester: int | None = None,
        job_id: str | None = None,
    ) -> TimetableGenerationMetric | None:
        """Persist one attempt. Failures are logged and never propagate to the caller."""
        record = TimetableGenerationMetric(
            job_id=job_id or new_job_id(),
            method=method or "unknown",
            duration_seconds=max(0.0, float(duration)),
            success=success,
            entries_generated=entries_generated,
            conflicts_count=conflicts_count,
            error_message=error_message,
            academic_year=academic_year,
            semester=semester,
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "GENERATION METRIC WRITE FAILED | job_id=%s | method=%s",
                record.job_id,
                method,
            )
            return None
        logger.info(
            "GENERATION METRIC RECORDED | job_id=%s | method=%s | success=%s | duration=%.3f | entries=%s | conflicts=%s",
            record.job_id,
            method,
            success,
            record.duration_seconds,
            entries_generated,
            conflicts_count,
        )
        return record

    def get_performance_metrics(self) -> dict[str, dict[str, float | int]]:
        rows = self.db.execute(
            select(
                TimetableGenerationMetric.method,
                func.count(TimetableGenerationMetric.id),
                func.sum(case((TimetableGenerationMetric.success.is_(True), 1), else_=0)),
                func.avg(TimetableGenerationMetric.duration_seconds),
                func.avg(TimetableGenerationMetric.conflicts_count),
                func.avg(TimetableGenerationMetric.entries_generated),
            ).group_by(TimetableGenerationMetric.method)
        ).all()

        result = {method: _empty_method_metrics() for method in KNOWN_METHODS}
        for method, total, successes, avg_duration, avg_conflicts, avg_entries in rows:
            if method not in result:
                continue
            total = int(total or 0)
            result[method] = {
                "success_rate": round((int(successes or 0) / total) * 100, 2) if total else 0.0,
                "avg_duration": round(float(avg_duration or 0.0), 2),
                "avg_conflicts": round(float(avg_conflicts or 0.0), 2),
                "avg_entries": round(float(avg_entries or 0.0), 2),
                "total_attempts": total,
            }
        return result

    def get_recent_failures(self, limit: int = 10) -> list[dict]:
        rows = self.db.execute(
            select(TimetableGenerationMetric)
            .where(TimetableGenerationMetric.success.is_(False))
            .order_by(TimetableGenerationMetric.created_at.desc(), TimetableGenerationMetric.id.desc())
            .limit(limit)
        ).scalars().all()
        return [
            {
                "job_id": row.job_id,
                "method": row.method,
                "error_message": row.error_message,
                "academic_year": row.academic_year,
                "semester": row.semester,
                "timestamp": row.created_at,
            }
            for row in rows
        ]

    def recommend_method(self, academic_year: str, semester: int) -> str:
        metrics = self.get_performance_metrics()
        ai = metrics[METHOD_AI]
        genetic = metrics[METHOD_GENETIC]

        recommended = METHOD_AI
        if (
            ai["total_attempts"] > MIN_ATTEMPTS_FOR_COMPARISON
            and genetic["total_attempts"] > MIN_ATTEMPTS_FOR_COMPARISON
            and ai["success_rate"] < genetic["success_rate"] - SUCCESS_RATE_GAP
        ):
            recommended = METHOD_GENETIC

        term_failures = [
            failure
            for failure in self.get_recent_failures()
            if failure["academic_year"] == academic_year
            and failure["semester"] == semester
            and failure["method"] == METHOD_AI
        ]
        if len(term_failures) >= TERM_FAILURE_THRESHOLD:
            recommended = METHOD_GENETIC

        logger.info(
            "METHOD RECOMMENDATION | academic_year=%s | semester=%s | recommendation=%s | ai_success_rate=%s | genetic_success_rate=%s | term_ai_failures=%s",
            academic_year,
            semester,
            recommended,
            ai["success_rate"],
            genetic["success_rate"],
            len(term_failures),
        )
        return recommended
