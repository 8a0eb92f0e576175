"""Lifecycle operations for recurring task patterns."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cadence.api.schemas.recurring_task import RecurringTaskCreateRequest, RecurringTaskUpdateRequest
from cadence.core.clock import system_clock
from cadence.core.config import settings
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.services.errors import ConcurrencyConflict, PatternNotFoundError, PatternValidationError
from cadence.services.recurrence import (
    HolidayPredicate,
    calculate_next_occurrence,
    initial_cursor,
    recompute_cursor,
    serialize_skip_dates,
    skip_dates_of,
    validate_pattern,
)
from cadence.services.task_generator import GenerationResult, generate_tasks
from cadence.services.user_service import get_or_create_user


logger = logging.getLogger(__name__)

# Changing any of these invalidates the cursor.
RECURRENCE_FIELDS = frozenset(
    {
        "frequency",
        "interval",
        "days_of_week",
        "day_of_month",
        "start_date",
        "end_date",
        "skip_dates",
        "skip_weekends",
        "skip_holidays",
    }
)


@dataclass
class PatternStats:
    total: int
    completed: int
    pending: int
    in_progress: int
    overdue: int
    completion_rate: float
    avg_completion_time_hours: float
    tasks_generated: int
    next_generation_date: Optional[date]


def get_pattern(db: Session, pattern_id: UUID) -> RecurringTask:
    pattern = db.get(RecurringTask, pattern_id)
    if pattern is None:
        raise PatternNotFoundError(pattern_id)
    return pattern


def list_patterns(
    db: Session,
    *,
    created_by: Optional[UUID] = None,
    team_id: Optional[UUID] = None,
    frequency: Optional[str] = None,
    include_paused: bool = True,
    limit: int = 20,
    offset: int = 0,
) -> List[RecurringTask]:
    query = db.query(RecurringTask)
    if created_by is not None:
        query = query.filter(RecurringTask.created_by == created_by)
    if team_id is not None:
        query = query.filter(RecurringTask.team_id == team_id)
    if frequency is not None:
        query = query.filter(RecurringTask.frequency == frequency)
    if not include_paused:
        query = query.filter(RecurringTask.paused.is_(False))
    return (
        query.order_by(desc(RecurringTask.created_at), RecurringTask.title)
        .offset(offset)
        .limit(limit)
        .all()
    )


def recent_generated_tasks(db: Session, pattern_id: UUID, limit: int = 5) -> List[Task]:
    return (
        db.query(Task)
        .filter(Task.recurring_task_id == pattern_id)
        .order_by(desc(Task.created_at), desc(Task.due_date))
        .limit(limit)
        .all()
    )


def create_pattern(
    db: Session,
    payload: RecurringTaskCreateRequest,
    *,
    today: Optional[date] = None,
    is_holiday: Optional[HolidayPredicate] = None,
) -> RecurringTask:
    """Validate and store a new pattern with its cursor already seeded.

    An active pattern whose first occurrence is already due gets that task
    materialized straight away instead of waiting for the next sweep.
    """
    today = today or system_clock.today()
    pattern = RecurringTask(
        title=payload.title.strip(),
        description=payload.description,
        frequency=payload.frequency,
        interval=payload.interval,
        days_of_week=sorted(set(payload.days_of_week)) if payload.days_of_week else None,
        day_of_month=payload.day_of_month,
        start_date=payload.start_date or today,
        end_date=payload.end_date,
        max_occurrences=payload.max_occurrences,
        skip_dates=serialize_skip_dates(payload.skip_dates),
        skip_weekends=payload.skip_weekends,
        skip_holidays=payload.skip_holidays,
        paused=payload.paused,
        tasks_generated=0,
        task_template=payload.task_template.model_dump(mode="json", exclude_none=True),
        created_by=payload.user_id,
        team_id=payload.team_id,
    )
    validate_pattern(pattern)
    pattern.next_generation_date = recompute_cursor(pattern, today)

    try:
        get_or_create_user(db, payload.user_id)
        db.add(pattern)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(pattern)
    logger.info(
        "Created recurring task %s (%s every %s); first generation %s",
        pattern.id,
        pattern.frequency,
        pattern.interval,
        pattern.next_generation_date,
    )
    if not pattern.paused and pattern.next_generation_date <= today:
        generate_tasks(db, pattern, 1, today=today, is_holiday=is_holiday)
        pattern = get_pattern(db, pattern.id)
    return pattern


def update_pattern(
    db: Session,
    pattern_id: UUID,
    patch: RecurringTaskUpdateRequest,
    *,
    today: Optional[date] = None,
) -> RecurringTask:
    today = today or system_clock.today()
    changes = patch.model_dump(exclude_unset=True, exclude={"user_id"})
    changes.pop("task_template", None)
    template_changes = (
        patch.task_template.model_dump(mode="json", exclude_unset=True) if patch.task_template else None
    )
    if "skip_dates" in changes:
        changes["skip_dates"] = serialize_skip_dates(changes["skip_dates"] or [])
    if changes.get("days_of_week"):
        changes["days_of_week"] = sorted(set(changes["days_of_week"]))

    def apply(pattern: RecurringTask) -> None:
        for name, value in changes.items():
            setattr(pattern, name, value)
        if template_changes is not None:
            template = dict(pattern.task_template or {})
            for key, value in template_changes.items():
                if value is None:
                    template.pop(key, None)
                else:
                    template[key] = value
            pattern.task_template = template
        validate_pattern(pattern)
        if RECURRENCE_FIELDS.intersection(changes):
            pattern.next_generation_date = recompute_cursor(pattern, today)

    pattern = _mutate(db, pattern_id, apply)
    logger.info("Updated recurring task %s fields=%s", pattern_id, sorted(changes))
    return pattern


def delete_pattern(db: Session, pattern_id: UUID, *, cascade_delete_generated: bool = False) -> int:
    """Delete a pattern; returns how many generated tasks were removed with it."""
    pattern = get_pattern(db, pattern_id)
    removed = 0
    try:
        if cascade_delete_generated:
            removed = (
                db.query(Task)
                .filter(Task.recurring_task_id == pattern_id)
                .delete(synchronize_session=False)
            )
        db.delete(pattern)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted recurring task %s (generated tasks removed=%s)", pattern_id, removed)
    return removed


def pause_pattern(db: Session, pattern_id: UUID) -> RecurringTask:
    def apply(pattern: RecurringTask) -> None:
        pattern.paused = True

    return _mutate(db, pattern_id, apply)


def resume_pattern(
    db: Session,
    pattern_id: UUID,
    *,
    today: Optional[date] = None,
    is_holiday: Optional[HolidayPredicate] = None,
) -> RecurringTask:
    """Unpause, and generate once right away when the cursor is already due."""
    today = today or system_clock.today()
    current = get_pattern(db, pattern_id)
    if not current.paused:
        return current

    def apply(pattern: RecurringTask) -> None:
        pattern.paused = False
        if pattern.next_generation_date is None:
            pattern.next_generation_date = initial_cursor(pattern, today)

    pattern = _mutate(db, pattern_id, apply)
    if pattern.next_generation_date <= today:
        logger.info("Recurring task %s resumed past due (%s); catching up", pattern_id, pattern.next_generation_date)
        generate_tasks(db, pattern, 1, today=today, is_holiday=is_holiday)
        pattern = get_pattern(db, pattern_id)
    return pattern


def generate_now(
    db: Session,
    pattern_id: UUID,
    count: int = 1,
    *,
    today: Optional[date] = None,
    is_holiday: Optional[HolidayPredicate] = None,
) -> GenerationResult:
    max_count = settings.generate_now_max_count
    if count < 1 or count > max_count:
        raise PatternValidationError(f"Count must be between 1 and {max_count}", field="count")
    pattern = get_pattern(db, pattern_id)
    if pattern.paused:
        raise PatternValidationError("Cannot generate tasks for a paused recurring pattern", field="paused")
    return generate_tasks(db, pattern, count, today=today, is_holiday=is_holiday)


def add_skip_date(db: Session, pattern_id: UUID, day: date) -> RecurringTask:
    def apply(pattern: RecurringTask) -> None:
        existing = skip_dates_of(pattern)
        if day in existing:
            return
        pattern.skip_dates = serialize_skip_dates(existing | {day})
        if pattern.next_generation_date == day:
            pattern.next_generation_date = calculate_next_occurrence(pattern, day)

    return _mutate(db, pattern_id, apply)


def remove_skip_date(
    db: Session,
    pattern_id: UUID,
    day: date,
    *,
    today: Optional[date] = None,
) -> RecurringTask:
    today = today or system_clock.today()

    def apply(pattern: RecurringTask) -> None:
        existing = skip_dates_of(pattern)
        if day not in existing:
            return
        pattern.skip_dates = serialize_skip_dates(existing - {day})
        pattern.next_generation_date = recompute_cursor(pattern, today)

    return _mutate(db, pattern_id, apply)


def get_stats(
    db: Session,
    pattern_id: UUID,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> PatternStats:
    """Completion figures for every task generated from the pattern."""
    pattern = get_pattern(db, pattern_id)
    now = now or system_clock.now()
    today = now.astimezone(tz or system_clock.tz).date()
    tasks = db.query(Task).filter(Task.recurring_task_id == pattern_id).all()

    total = len(tasks)
    completed = [task for task in tasks if task.status == "completed"]
    pending = sum(1 for task in tasks if task.status == "pending")
    in_progress = sum(1 for task in tasks if task.status == "in_progress")
    overdue = sum(
        1 for task in tasks if task.status != "completed" and task.due_date and task.due_date < today
    )
    completion_rate = (len(completed) / total) * 100 if total else 0.0

    durations = [
        (_as_utc(task.completed_at) - _as_utc(task.created_at)).total_seconds() / 3600
        for task in completed
        if task.completed_at and task.created_at
    ]
    avg_hours = sum(durations) / len(durations) if durations else 0.0

    return PatternStats(
        total=total,
        completed=len(completed),
        pending=pending,
        in_progress=in_progress,
        overdue=overdue,
        completion_rate=round(completion_rate, 1),
        avg_completion_time_hours=round(avg_hours, 1),
        tasks_generated=pattern.tasks_generated,
        next_generation_date=pattern.next_generation_date,
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _mutate(db: Session, pattern_id: UUID, apply: Callable[[RecurringTask], None]) -> RecurringTask:
    """Apply `apply` to a fresh copy of the pattern and commit, retrying on version conflicts."""
    attempt = 0
    while True:
        attempt += 1
        pattern = get_pattern(db, pattern_id)
        try:
            apply(pattern)
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            if attempt > settings.generation_max_retries:
                raise ConcurrencyConflict(pattern_id, attempt) from exc
            logger.info("Recurring task %s changed concurrently (attempt %s); retrying", pattern_id, attempt)
            continue
        except Exception:
            db.rollback()
            raise
        db.refresh(pattern)
        return pattern
