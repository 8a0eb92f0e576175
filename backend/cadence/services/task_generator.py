"""Materialize task instances from recurring task patterns."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cadence.core.clock import system_clock
from cadence.core.config import settings
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.observability.metrics import log_metric
from cadence.services.errors import (
    ConcurrencyConflict,
    GenerationSafetyLimitExceeded,
    PatternNotFoundError,
    PatternValidationError,
)
from cadence.services.notifications.hooks import notify_generated_tasks
from cadence.services.recurrence import (
    HolidayPredicate,
    generate_task_data,
    initial_cursor,
    is_exhausted,
    next_occurrence_or_none,
    should_generate_task,
)


logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    tasks: List[Task] = field(default_factory=list)
    cursor: Optional[date] = None
    advances: int = 0
    skipped: int = 0
    duplicates: int = 0
    exhausted: bool = False
    safety_limit_reached: bool = False
    attempts: int = 1


def generate_tasks(
    db: Session,
    pattern: RecurringTask,
    count: int = 1,
    *,
    today: Optional[date] = None,
    is_holiday: Optional[HolidayPredicate] = None,
) -> GenerationResult:
    """Materialize up to `count` tasks and advance the pattern's cursor.

    The task rows and the pattern bookkeeping are committed together. A
    concurrent writer is detected through the pattern's version column or the
    unique (recurring_task_id, due_date) constraint; the loser rolls back,
    re-reads the pattern and tries again.
    """
    if count < 1:
        raise PatternValidationError("Count must be at least 1", field="count")

    today = today or system_clock.today()
    pattern_id = pattern.id
    attempt = 0

    while True:
        attempt += 1
        if pattern.paused:
            logger.debug("Recurring task %s is paused; nothing generated", pattern_id)
            return GenerationResult(cursor=pattern.next_generation_date, attempts=attempt)

        try:
            result = _materialize(db, pattern, count, today, is_holiday)
            db.commit()
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            if attempt > settings.generation_max_retries:
                raise ConcurrencyConflict(pattern_id, attempt) from exc
            logger.info(
                "Recurring task %s changed concurrently (attempt %s); re-reading and retrying",
                pattern_id,
                attempt,
            )
            pattern = db.get(RecurringTask, pattern_id)
            if pattern is None:
                raise PatternNotFoundError(pattern_id) from exc
            continue
        except Exception:
            db.rollback()
            raise

        result.attempts = attempt
        break

    if result.safety_limit_reached:
        logger.warning(
            "%s",
            GenerationSafetyLimitExceeded(pattern_id, result.advances, len(result.tasks), count),
        )
    if result.tasks:
        logger.info(
            "Generated %s task(s) for recurring task %s; next generation %s",
            len(result.tasks),
            pattern_id,
            result.cursor,
        )
        notify_generated_tasks(pattern, result.tasks)

    log_metric(
        "recurring_task.generate.tasks_created",
        len(result.tasks),
        metadata={"recurring_task_id": str(pattern_id), "requested": count, "attempts": attempt},
    )
    return result


def _materialize(
    db: Session,
    pattern: RecurringTask,
    count: int,
    today: date,
    is_holiday: Optional[HolidayPredicate],
) -> GenerationResult:
    cursor = pattern.next_generation_date or initial_cursor(pattern, today)
    max_advances = settings.generation_advance_factor * count
    horizon = timedelta(days=settings.generation_horizon_days)
    run_start = cursor
    result = GenerationResult(cursor=cursor)

    while len(result.tasks) < count:
        if is_exhausted(pattern, cursor):
            result.exhausted = True
            break
        if result.advances >= max_advances or cursor - run_start > horizon:
            result.safety_limit_reached = True
            break

        if not should_generate_task(pattern, cursor, is_holiday):
            result.skipped += 1
        elif _already_materialized(db, pattern, cursor):
            result.duplicates += 1
        else:
            task = Task(**asdict(generate_task_data(pattern, cursor)))
            db.add(task)
            db.flush()
            pattern.tasks_generated = (pattern.tasks_generated or 0) + 1
            pattern.last_generated_date = cursor
            result.tasks.append(task)
            run_start = cursor

        result.advances += 1
        cursor = next_occurrence_or_none(pattern, cursor)
        if cursor is None:
            logger.warning("Recurring task %s has no occurrence left before year 9999", pattern.id)
            result.exhausted = True
            break

    pattern.next_generation_date = cursor
    result.cursor = cursor
    return result


def _already_materialized(db: Session, pattern: RecurringTask, day: date) -> bool:
    existing = (
        db.query(Task.id)
        .filter(Task.recurring_task_id == pattern.id, Task.due_date == day)
        .first()
    )
    return existing is not None
