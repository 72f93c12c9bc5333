import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from slotwise.db.base import Base


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    year_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    credit_units: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    is_elective: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requires_lab: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lecturer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    prerequisite_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
