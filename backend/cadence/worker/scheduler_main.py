"""Dedicated APScheduler worker process for recurring task generation."""
from __future__ import annotations

import logging
import signal
import threading

from cadence.core.config import settings
from cadence.core.logging import configure_logging
from cadence.observability.client import flush_opik, init_opik
from cadence.services.scheduler import RecurringTaskScheduler


logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    init_opik(component="worker")
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = RecurringTaskScheduler()
    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        scheduler.stop()
        flush_opik()
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
