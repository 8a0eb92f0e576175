"""Pattern owner ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from cadence.db.base import Base


class User(Base):
    """Owner of recurring task patterns; rows are created on first use."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Patterns go with their owner; the database cascade does the work.
    recurring_tasks = relationship(
        "RecurringTask",
        back_populates="owner",
        passive_deletes=True,
    )
