"""No-op notification provider (logs only)."""
from __future__ import annotations

import logging
from uuid import UUID

from cadence.services.notifications.base import NotificationResult, NotificationService


logger = logging.getLogger(__name__)


class NoopNotificationService(NotificationService):
    def notify_recurring_task_generated(
        self,
        *,
        user_id: UUID,
        recurring_task_id: UUID,
        task_id: UUID,
        pattern_title: str,
        task_title: str,
    ) -> NotificationResult:
        logger.info(
            "Notification queued (noop) recurring_task_generated user=%s pattern=%s task=%s title=%s",
            user_id,
            recurring_task_id,
            task_id,
            task_title,
        )
        return NotificationResult(status="noop", reason="notification provider is noop")
