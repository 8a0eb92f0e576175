"""Notification service factory."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, Type

from cadence.core.config import settings
from cadence.services.notifications.base import NotificationService
from cadence.services.notifications.noop import NoopNotificationService

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Type[NotificationService]] = {
    "noop": NoopNotificationService,
}


@lru_cache
def get_notification_service() -> NotificationService:
    """Provider selected by NOTIFICATIONS_PROVIDER; unknown names fall back to noop."""
    provider = settings.notifications_provider.lower()
    service_cls = PROVIDERS.get(provider)
    if service_cls is None:
        logger.warning("Unknown notifications provider %r; recurring task notifications use noop", provider)
        service_cls = NoopNotificationService
    return service_cls()
