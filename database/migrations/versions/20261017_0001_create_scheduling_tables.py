"""create scheduling tables

Revision ID: 20261017_0001
Revises: None
Create Date: 2026-10-17 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None

CONFLICT_TYPES = (
    "ROOM",
    "LECTURER",
    "AVAILABILITY",
    "CAPACITY",
    "MAX_COURSES",
    "STUDENT_GROUP",
    "PREREQUISITE",
    "INVALID_ENTRY",
    "MANUAL_REVIEW",
)
ROOM_TYPES = ("lecture_hall", "lab", "seminar", "computer_lab")


def upgrade() -> None:
    bind = op.get_bind()
    room_type = postgresql.ENUM(*ROOM_TYPES, name="room_type", create_type=False)
    conflict_type = postgresql.ENUM(*CONFLICT_TYPES, name="conflict_type", create_type=False)
    room_type.create(bind, checkfirst=True)
    conflict_type.create(bind, checkfirst=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("year_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("credit_units", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("is_elective", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enrollment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("requires_lab", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("lecturer_id", sa.String(length=36), nullable=True),
        sa.Column("prerequisite_ids", sa.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_courses_code", "courses", ["code"], unique=True)
    op.create_index("ix_courses_department", "courses", ["department"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("type", room_type, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "lecturers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("max_courses", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("availability_windows", sa.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_lecturers_user_id", "lecturers", ["user_id"])
    op.create_index("ix_lecturers_department", "lecturers", ["department"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("label", sa.String(length=50), nullable=True),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("room_id", sa.String(length=36), nullable=False),
        sa.Column("lecturer_id", sa.String(length=36), nullable=False),
        sa.Column("day", sa.String(length=10), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), nullable=False),
        sa.Column("academic_year", sa.String(length=20), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("has_conflict", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("conflict_type", conflict_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetable_entries_course_id", "timetable_entries", ["course_id"])
    op.create_index("ix_timetable_entries_lecturer_id", "timetable_entries", ["lecturer_id"])
    op.create_index("ix_timetable_entries_academic_year", "timetable_entries", ["academic_year"])
    op.create_index("ix_timetable_entries_semester", "timetable_entries", ["semester"])

    op.create_table(
        "conflicts",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("entry1_id", sa.String(length=36), nullable=False),
        sa.Column("entry2_id", sa.String(length=36), nullable=True),
        sa.Column("type", conflict_type, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("academic_year", sa.String(length=20), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_conflicts_entry1_id", "conflicts", ["entry1_id"])
    op.create_index("ix_conflicts_entry2_id", "conflicts", ["entry2_id"])
    op.create_index("ix_conflicts_academic_year", "conflicts", ["academic_year"])
    op.create_index("ix_conflicts_semester", "conflicts", ["semester"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("conflict_type", conflict_type, nullable=True),
        sa.Column("entry_id", sa.String(length=36), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "timetable_generation_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("population_size", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("generations", sa.Integer(), nullable=False, server_default="150"),
        sa.Column("mutation_rate", sa.Float(), nullable=False, server_default="0.15"),
        sa.Column("crossover_rate", sa.Float(), nullable=False, server_default="0.8"),
        sa.Column("elite_count", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("tournament_size", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("stagnation_limit", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("max_placement_attempts", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("max_courses_per_day", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("evaluation_workers", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("random_seed", sa.Integer(), nullable=True),
        sa.Column("fitness_weights", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "timetable_generation_metrics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("method", sa.String(length=40), nullable=False, server_default="unknown"),
        sa.Column("duration_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("entries_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conflicts_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("academic_year", sa.String(length=20), nullable=True),
        sa.Column("semester", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("job_id", name="uq_timetable_generation_metrics_job_id"),
    )
    op.create_index(
        "ix_timetable_generation_metrics_method_success",
        "timetable_generation_metrics",
        ["method", "success"],
    )
    op.create_index(
        "ix_timetable_generation_metrics_term",
        "timetable_generation_metrics",
        ["academic_year", "semester"],
    )


def downgrade() -> None:
    op.drop_index("ix_timetable_generation_metrics_term", table_name="timetable_generation_metrics")
    op.drop_index("ix_timetable_generation_metrics_method_success", table_name="timetable_generation_metrics")
    op.drop_table("timetable_generation_metrics")
    op.drop_table("timetable_generation_settings")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_conflicts_semester", table_name="conflicts")
    op.drop_index("ix_conflicts_academic_year", table_name="conflicts")
    op.drop_index("ix_conflicts_entry2_id", table_name="conflicts")
    op.drop_index("ix_conflicts_entry1_id", table_name="conflicts")
    op.drop_table("conflicts")
    op.drop_index("ix_timetable_entries_semester", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_academic_year", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_lecturer_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_course_id", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    op.drop_table("time_slots")
    op.drop_index("ix_lecturers_department", table_name="lecturers")
    op.drop_index("ix_lecturers_user_id", table_name="lecturers")
    op.drop_table("lecturers")
    op.drop_index("ix_rooms_name", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_courses_department", table_name="courses")
    op.drop_index("ix_courses_code", table_name="courses")
    op.drop_table("courses")

    bind = op.get_bind()
    postgresql.ENUM(*CONFLICT_TYPES, name="conflict_type", create_type=False).drop(bind, checkfirst=True)
    postgresql.ENUM(*ROOM_TYPES, name="room_type", create_type=False).drop(bind, checkfirst=True)
