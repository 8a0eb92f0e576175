"""Notification hooks fired after recurring task generation."""
from __future__ import annotations

import logging
from typing import Iterable, List

from cadence.core.config import settings
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.observability.metrics import log_metric
from cadence.services.notifications.base import NotificationResult
from cadence.services.notifications.factory import get_notification_service


logger = logging.getLogger(__name__)


def notify_generated_tasks(pattern: RecurringTask, tasks: Iterable[Task]) -> List[NotificationResult]:
    """Tell assignees about new tasks; the pattern owner is never notified about their own tasks."""
    results: List[NotificationResult] = []
    for task in tasks:
        if not task.assigned_to or task.assigned_to == pattern.created_by:
            continue
        if not settings.notifications_enabled:
            results.append(NotificationResult(status="skipped", reason="notifications disabled"))
            continue
        try:
            result = get_notification_service().notify_recurring_task_generated(
                user_id=task.assigned_to,
                recurring_task_id=pattern.id,
                task_id=task.id,
                pattern_title=pattern.title,
                task_title=task.title,
            )
        except Exception as exc:  # pragma: no cover - provider specific
            logger.exception("Notification failed for task %s", task.id)
            result = NotificationResult(status="error", reason=str(exc))
        results.append(result)
        log_metric(
            "notifications.recurring_task_generated",
            1 if result.status != "error" else 0,
            metadata={"status": result.status, "recurring_task_id": str(pattern.id)},
        )
    return results
