"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass
class NotificationResult:
    status: str
    reason: str


class NotificationService:
    """Base interface for notification providers."""

    def notify_recurring_task_generated(
        self,
        *,
        user_id: UUID,
        recurring_task_id: UUID,
        task_id: UUID,
        pattern_title: str,
        task_title: str,
    ) -> NotificationResult:
        raise NotImplementedError
