"""Opik SDK client shared by the API process and the scheduler worker."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from opik import Opik

from cadence.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Opik] = None
_client_lock = Lock()
_init_attempted = False


def init_opik(component: str = "api") -> Optional[Opik]:
    """Initialize the Opik client once per process and return it."""
    global _client, _init_attempted

    with _client_lock:
        if _client is not None or _init_attempted:
            return _client
        _init_attempted = True

    if not settings.opik_enabled:
        logger.debug("Opik disabled; %s traces are dropped", component)
        return None

    if not settings.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; skipping Opik init for %s.", component)
        return None

    try:
        client = Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
    except Exception as exc:  # pragma: no cover - depends on remote backend
        logger.warning("Failed to initialize Opik, %s tracing will be disabled: %s", component, exc)
        return None

    logger.info("Opik enabled for %s (project=%s).", component, settings.opik_project)
    _client = client
    return _client


def get_opik_client() -> Optional[Opik]:
    """Return the cached Opik client if tracing is enabled."""
    if _client is not None:
        return _client
    return init_opik()


def flush_opik() -> None:
    """Push buffered traces; the worker calls this before exiting."""
    if _client is None:
        return
    try:
        _client.flush()
    except Exception as exc:  # pragma: no cover - depends on remote backend
        logger.warning("Failed to flush Opik traces: %s", exc)
