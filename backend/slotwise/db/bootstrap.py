from __future__ import annotations

import logging

from sqlalchemy import inspect

from slotwise.db.base import Base
from slotwise.db.session import engine
import slotwise.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "courses": {"id", "code", "department", "year_level", "enrollment_count", "requires_lab", "lecturer_id"},
    "rooms": {"id", "name", "capacity", "type", "department", "is_active"},
    "lecturers": {"id", "department", "max_courses", "user_id"},
    "time_slots": {"id", "start_time", "end_time", "is_break"},
    "timetable_entries": {
        "id",
        "course_id",
        "room_id",
        "lecturer_id",
        "day",
        "time_slot_id",
        "academic_year",
        "semester",
        "has_conflict",
        "conflict_type",
    },
    "conflicts": {"id", "entry1_id", "entry2_id", "type", "resolved", "academic_year", "semester"},
    "timetable_generation_metrics": {"id", "job_id", "method", "success", "academic_year", "semester"},
}


def missing_schema_items(bind) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(bind)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = missing_schema_items(connection)
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
        if missing_columns:
            flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
            raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
