"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text as sa_text,
)
from sqlalchemy.dialects.postgresql import UUID

from cadence.db.base import Base
from cadence.db.types import JSONBCompat


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("recurring_task_id", "due_date", name="uq_tasks_recurring_task_due_date"),
        Index("ix_tasks_recurring_task_id", "recurring_task_id"),
        Index("ix_tasks_created_by", "created_by"),
        Index("ix_tasks_status", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    # No foreign key: generated tasks outlive their pattern and keep the id for auditing.
    recurring_task_id = Column(UUID(as_uuid=True), nullable=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(length=20), nullable=False, default="medium", server_default=sa_text("'medium'"))
    status = Column(String(length=20), nullable=False, default="pending", server_default=sa_text("'pending'"))
    assigned_to = Column(UUID(as_uuid=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), nullable=False)
    team_id = Column(UUID(as_uuid=True), nullable=True)
    tags = Column(JSONBCompat, nullable=True)
    estimated_time = Column(Integer, nullable=True)
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
