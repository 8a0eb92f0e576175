"""Background sweep that materializes due recurring tasks."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from time import perf_counter
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from cadence.core.clock import Clock, system_clock
from cadence.core.config import settings
from cadence.core.context import bind_request_id
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.session import SessionLocal
from cadence.observability.metrics import log_metrics
from cadence.observability.tracing import trace
from cadence.services.recurrence import HolidayPredicate, initial_cursor
from cadence.services.task_generator import generate_tasks


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "recurring_task_sweep"
MAINTENANCE_JOB_ID = "recurring_task_maintenance"


@dataclass
class SweepResult:
    patterns_due: int = 0
    patterns_processed: int = 0
    tasks_generated: int = 0
    failures: int = 0
    duration_ms: float = 0.0


@dataclass
class MaintenanceResult:
    cursors_backfilled: int = 0
    paused_max_occurrences: int = 0
    paused_past_end_date: int = 0
    paused_out_of_range: int = 0
    failures: int = 0

    @property
    def paused(self) -> int:
        return self.paused_max_occurrences + self.paused_past_end_date + self.paused_out_of_range


class RecurringTaskScheduler:
    """Owns the periodic sweep; `run_tick` and `run_maintenance` can also be called directly."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        clock: Clock = system_clock,
        is_holiday: Optional[HolidayPredicate] = None,
        interval_minutes: Optional[int] = None,
        maintenance_interval_minutes: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.is_holiday = is_holiday
        self.interval_minutes = interval_minutes or settings.scheduler_interval_minutes
        self.maintenance_interval_minutes = (
            maintenance_interval_minutes or settings.maintenance_interval_minutes
        )
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self, *, run_immediately: Optional[bool] = None) -> bool:
        """Start the timers. Returns False when already running."""
        with self._lock:
            if self._scheduler is not None:
                logger.info("Recurring task scheduler already running")
                return False
            scheduler = BackgroundScheduler(timezone=str(self.clock.tz))
            scheduler.add_job(
                self._run_tick_job,
                trigger="interval",
                minutes=self.interval_minutes,
                id=SWEEP_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.add_job(
                self._run_maintenance_job,
                trigger="interval",
                minutes=self.maintenance_interval_minutes,
                id=MAINTENANCE_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            self._scheduler = scheduler
        logger.info(
            "Recurring task scheduler started (sweep=%smin, maintenance=%smin, tz=%s)",
            self.interval_minutes,
            self.maintenance_interval_minutes,
            self.clock.tz,
        )

        if settings.jobs_run_on_startup if run_immediately is None else run_immediately:
            logger.info("Running maintenance and sweep once on startup")
            self._run_maintenance_job()
            self._run_tick_job()
        return True

    def stop(self) -> bool:
        """Stop the timers. Returns False when already stopped."""
        with self._lock:
            if self._scheduler is None:
                return False
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("Recurring task scheduler stopped")
        return True

    def run_tick(self) -> SweepResult:
        """Generate one task for every due, unpaused pattern."""
        started = perf_counter()
        today = self.clock.today()
        result = SweepResult()

        db = self.session_factory()
        try:
            with bind_request_id(_run_id("tick")), trace("scheduler.tick", metadata={"today": today.isoformat()}):
                due_ids = _due_pattern_ids(db, today)
                result.patterns_due = len(due_ids)
                for pattern_id in due_ids:
                    try:
                        pattern = db.get(RecurringTask, pattern_id)
                        if pattern is None or pattern.paused:
                            continue
                        generation = generate_tasks(db, pattern, 1, today=today, is_holiday=self.is_holiday)
                    except Exception:
                        db.rollback()
                        result.failures += 1
                        logger.exception("Recurring task generation failed for pattern %s", pattern_id)
                        continue
                    result.patterns_processed += 1
                    result.tasks_generated += len(generation.tasks)
        finally:
            db.close()

        result.duration_ms = (perf_counter() - started) * 1000
        logger.info(
            "Recurring task sweep complete: due=%s processed=%s tasks=%s failures=%s in %.1fms",
            result.patterns_due,
            result.patterns_processed,
            result.tasks_generated,
            result.failures,
            result.duration_ms,
        )
        log_metrics(
            "scheduler.tick",
            {
                "patterns_processed": result.patterns_processed,
                "tasks_generated": result.tasks_generated,
                "failures": result.failures,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    def run_maintenance(self) -> MaintenanceResult:
        """Backfill missing cursors and pause exhausted or expired patterns."""
        today = self.clock.today()
        result = MaintenanceResult()

        db = self.session_factory()
        try:
            with bind_request_id(_run_id("maintenance")), trace(
                "scheduler.maintenance", metadata={"today": today.isoformat()}
            ):
                for pattern_id in _ids(
                    db,
                    RecurringTask.paused.is_(False),
                    RecurringTask.next_generation_date.is_(None),
                ):
                    if not self._maintain(db, pattern_id, lambda p: _backfill_cursor(p, today), result):
                        continue
                    if db.get(RecurringTask, pattern_id).paused:
                        result.paused_out_of_range += 1
                    else:
                        result.cursors_backfilled += 1

                for pattern_id in _ids(
                    db,
                    RecurringTask.paused.is_(False),
                    RecurringTask.max_occurrences.isnot(None),
                    RecurringTask.tasks_generated >= RecurringTask.max_occurrences,
                ):
                    if self._maintain(db, pattern_id, _pause_when_exhausted, result):
                        result.paused_max_occurrences += 1

                for pattern_id in _ids(
                    db,
                    RecurringTask.paused.is_(False),
                    RecurringTask.end_date.isnot(None),
                    RecurringTask.end_date <= today,
                ):
                    if self._maintain(db, pattern_id, _pause_when_expired, result):
                        result.paused_past_end_date += 1
        finally:
            db.close()

        logger.info(
            "Recurring task maintenance complete: backfilled=%s paused_max=%s paused_expired=%s paused_out_of_range=%s failures=%s",
            result.cursors_backfilled,
            result.paused_max_occurrences,
            result.paused_past_end_date,
            result.paused_out_of_range,
            result.failures,
        )
        log_metrics(
            "scheduler.maintenance",
            {
                "cursors_backfilled": result.cursors_backfilled,
                "paused": result.paused,
                "failures": result.failures,
            },
        )
        return result

    def _maintain(
        self,
        db: Session,
        pattern_id: UUID,
        apply: Callable[[RecurringTask], bool],
        result: MaintenanceResult,
    ) -> bool:
        try:
            pattern = db.get(RecurringTask, pattern_id)
            if pattern is None or not apply(pattern):
                return False
            db.commit()
        except Exception:
            db.rollback()
            result.failures += 1
            logger.exception("Recurring task maintenance failed for pattern %s", pattern_id)
            return False
        return True

    def _run_tick_job(self) -> None:
        try:
            self.run_tick()
        except Exception:  # pragma: no cover - keeps the timer alive
            logger.exception("Recurring task sweep failed")

    def _run_maintenance_job(self) -> None:
        try:
            self.run_maintenance()
        except Exception:  # pragma: no cover - keeps the timer alive
            logger.exception("Recurring task maintenance failed")


def _due_pattern_ids(db: Session, today) -> List[UUID]:
    rows = (
        db.query(RecurringTask.id)
        .filter(
            RecurringTask.paused.is_(False),
            RecurringTask.next_generation_date.isnot(None),
            RecurringTask.next_generation_date <= today,
        )
        .order_by(RecurringTask.next_generation_date.asc())
        .all()
    )
    return [row[0] for row in rows]


def _ids(db: Session, *criteria) -> List[UUID]:
    return [row[0] for row in db.query(RecurringTask.id).filter(*criteria).all()]


def _backfill_cursor(pattern: RecurringTask, today) -> bool:
    if pattern.next_generation_date is not None:
        return False
    try:
        cursor = initial_cursor(pattern, today)
    except (OverflowError, ValueError):
        pattern.paused = True
        logger.warning("Paused recurring task %s: no occurrence left before year 9999", pattern.id)
        return True
    pattern.next_generation_date = cursor
    logger.info("Backfilled next generation date %s for recurring task %s", pattern.next_generation_date, pattern.id)
    return True


def _pause_when_exhausted(pattern: RecurringTask) -> bool:
    if pattern.paused or not pattern.max_occurrences or pattern.tasks_generated < pattern.max_occurrences:
        return False
    pattern.paused = True
    logger.info(
        "Paused recurring task %s: reached maximum occurrences (%s)",
        pattern.id,
        pattern.max_occurrences,
    )
    return True


def _pause_when_expired(pattern: RecurringTask) -> bool:
    # A cursor still before end_date means there is backlog left to generate.
    cursor = pattern.next_generation_date
    if pattern.paused or (cursor is not None and cursor < pattern.end_date):
        return False
    pattern.paused = True
    logger.info("Paused recurring task %s: passed its end date (%s)", pattern.id, pattern.end_date)
    return True


def _run_id(kind: str) -> str:
    return f"{kind}-{uuid4().hex[:12]}"
