"""Recurring task pattern ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from cadence.db.base import Base
from cadence.db.types import DateList, JSONBCompat


class RecurringTask(Base):
    __tablename__ = "recurring_tasks"
    __table_args__ = (
        Index("ix_recurring_tasks_created_by", "created_by"),
        Index("ix_recurring_tasks_team_id", "team_id"),
        Index("ix_recurring_tasks_next_generation_date", "next_generation_date"),
        Index("ix_recurring_tasks_paused", "paused"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(String(length=20), nullable=False)
    interval = Column(Integer, nullable=False, default=1, server_default=sa_text("1"))
    # 0 = Sunday ... 6 = Saturday
    days_of_week = Column(JSONBCompat, nullable=True)
    # -1 = last day of month
    day_of_month = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    max_occurrences = Column(Integer, nullable=True)
    # Stored as sorted ISO strings
    skip_dates = Column(DateList, nullable=True)
    skip_weekends = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    skip_holidays = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    paused = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    tasks_generated = Column(Integer, nullable=False, default=0, server_default=sa_text("0"))
    last_generated_date = Column(Date, nullable=True)
    next_generation_date = Column(Date, nullable=True)
    task_template = Column(JSONBCompat, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(UUID(as_uuid=True), nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    owner = relationship("User", back_populates="recurring_tasks")

    # Every UPDATE is conditional on the version read; a concurrent writer raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}
