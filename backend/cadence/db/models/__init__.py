"""ORM models exposed for metadata discovery."""
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.db.models.user import User

__all__ = [
    "RecurringTask",
    "Task",
    "User",
]
