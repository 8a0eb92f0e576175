from sqlalchemy import UniqueConstraint

from cadence.db.base import Base
from cadence.db import models  # noqa: F401  ensure models are loaded
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())

    assert {"users", "recurring_tasks", "tasks"}.issubset(table_names)


def test_recurring_task_is_versioned() -> None:
    mapper = RecurringTask.__mapper__

    assert mapper.version_id_col is RecurringTask.__table__.c.version


def test_tasks_are_unique_per_pattern_and_due_date() -> None:
    constraints = [c for c in Task.__table__.constraints if isinstance(c, UniqueConstraint)]

    assert any({col.name for col in c.columns} == {"recurring_task_id", "due_date"} for c in constraints)
