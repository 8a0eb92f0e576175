"""Calendar arithmetic for recurring task patterns.

Everything here is pure: functions read a pattern's recurrence fields and
return dates or drafts, never touching the database or the wall clock.
Weekday numbers follow the stored convention, 0 = Sunday ... 6 = Saturday.
"""
from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Set
from uuid import UUID

from dateutil.relativedelta import relativedelta

from cadence.db.models.recurring_task import RecurringTask
from cadence.services.errors import PatternValidationError

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
PRIORITIES = ("low", "medium", "high", "urgent")
LAST_DAY_OF_MONTH = -1
SATURDAY = 6
SUNDAY = 0
# Upper bound on `interval` per frequency, keeping every cadence inside the calendar.
MAX_INTERVAL = {"daily": 3660, "weekly": 520, "monthly": 120, "yearly": 100}

HolidayPredicate = Callable[[date], bool]


@dataclass
class TaskDraft:
    recurring_task_id: UUID
    title: str
    description: Optional[str]
    priority: str
    due_date: date
    created_by: UUID
    team_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    estimated_time: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    status: str = "pending"


def weekday_number(day: date) -> int:
    """Sunday-based weekday number (0 = Sunday)."""
    return (day.weekday() + 1) % 7


def _week_start(day: date) -> date:
    return day - timedelta(days=weekday_number(day))


def _clamp_day(year: int, month: int, day_of_month: int) -> date:
    last = monthrange(year, month)[1]
    if day_of_month == LAST_DAY_OF_MONTH or day_of_month > last:
        return date(year, month, last)
    return date(year, month, day_of_month)


def _month_index(day: date) -> int:
    return day.year * 12 + day.month - 1


def _day_of_month(pattern: RecurringTask) -> int:
    if pattern.day_of_month is None:
        return pattern.start_date.day
    return pattern.day_of_month


def _on_weekly_cadence(pattern: RecurringTask, day: date, days: Set[int]) -> bool:
    if weekday_number(day) not in days:
        return False
    weeks = (_week_start(day) - _week_start(pattern.start_date)).days // 7
    return weeks % (pattern.interval or 1) == 0


def coerce_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def skip_dates_of(pattern: RecurringTask) -> Set[date]:
    return {coerce_date(value) for value in (pattern.skip_dates or [])}


def serialize_skip_dates(values: Iterable[date]) -> List[str]:
    return sorted({coerce_date(value).isoformat() for value in values})


def calculate_next_occurrence(pattern: RecurringTask, from_date: date) -> date:
    """Return the next occurrence strictly after `from_date`."""
    interval = pattern.interval or 1

    if pattern.frequency == "daily":
        return from_date + timedelta(days=interval)

    if pattern.frequency == "weekly":
        days = set(pattern.days_of_week or [])
        if not days:
            raise PatternValidationError("Weekly patterns need at least one day of week", field="days_of_week")
        candidate = from_date + timedelta(days=1)
        # One full cadence cycle always contains a match.
        for _ in range(7 * interval + 7):
            if _on_weekly_cadence(pattern, candidate, days):
                return candidate
            candidate += timedelta(days=1)
        raise PatternValidationError("No weekday in days_of_week matches", field="days_of_week")

    if pattern.frequency == "monthly":
        target = date(from_date.year, from_date.month, 1) + relativedelta(months=interval)
        return _clamp_day(target.year, target.month, _day_of_month(pattern))

    if pattern.frequency == "yearly":
        anchor = pattern.start_date
        target = date(from_date.year, anchor.month, 1) + relativedelta(years=interval)
        return _clamp_day(target.year, anchor.month, anchor.day)

    raise PatternValidationError(f"Unsupported frequency {pattern.frequency!r}", field="frequency")


def next_occurrence_or_none(pattern: RecurringTask, from_date: date) -> Optional[date]:
    """Like calculate_next_occurrence, but None once the next date falls past year 9999."""
    try:
        return calculate_next_occurrence(pattern, from_date)
    except (OverflowError, ValueError):
        return None


def first_occurrence(pattern: RecurringTask, on_or_after: date) -> date:
    """Earliest occurrence on the pattern's cadence that is >= on_or_after and >= start_date."""
    start = pattern.start_date
    anchor = max(on_or_after, start)
    interval = pattern.interval or 1

    if pattern.frequency == "daily":
        steps = -(-(anchor - start).days // interval)
        return start + timedelta(days=steps * interval)

    if pattern.frequency == "weekly":
        return calculate_next_occurrence(pattern, anchor - timedelta(days=1))

    if pattern.frequency == "monthly":
        index = _month_index(anchor)
        remainder = (index - _month_index(start)) % interval
        if remainder:
            index += interval - remainder
        while True:
            candidate = _clamp_day(index // 12, index % 12 + 1, _day_of_month(pattern))
            if candidate >= anchor:
                return candidate
            index += interval

    if pattern.frequency == "yearly":
        year = anchor.year
        remainder = (year - start.year) % interval
        if remainder:
            year += interval - remainder
        while True:
            candidate = _clamp_day(year, start.month, start.day)
            if candidate >= anchor:
                return candidate
            year += interval

    raise PatternValidationError(f"Unsupported frequency {pattern.frequency!r}", field="frequency")


def recompute_cursor(pattern: RecurringTask, today: date) -> date:
    """Cursor for a pattern whose position must be rebuilt from `today`."""
    anchor = today
    if pattern.last_generated_date and pattern.last_generated_date >= anchor:
        anchor = pattern.last_generated_date + timedelta(days=1)
    return first_occurrence(pattern, anchor)


def initial_cursor(pattern: RecurringTask, today: date) -> date:
    """Cursor used when a pattern has none yet."""
    if pattern.last_generated_date:
        return calculate_next_occurrence(pattern, pattern.last_generated_date)
    return recompute_cursor(pattern, today)


def is_exhausted(pattern: RecurringTask, day: date) -> bool:
    """True when neither `day` nor any later date can produce a task."""
    if pattern.end_date and day >= pattern.end_date:
        return True
    if pattern.max_occurrences and (pattern.tasks_generated or 0) >= pattern.max_occurrences:
        return True
    return False


def should_generate_task(
    pattern: RecurringTask,
    day: date,
    is_holiday: Optional[HolidayPredicate] = None,
) -> bool:
    """Single eligibility predicate for materializing a task on `day`."""
    if pattern.paused:
        return False
    if day in skip_dates_of(pattern):
        return False
    if pattern.skip_weekends and weekday_number(day) in (SATURDAY, SUNDAY):
        return False
    if pattern.skip_holidays and is_holiday is not None and is_holiday(day):
        return False
    return not is_exhausted(pattern, day)


def _render(template: Optional[str], day: date, count: int) -> Optional[str]:
    if template is None:
        return None
    return template.replace("{{date}}", day.isoformat()).replace("{{count}}", str(count))


def _as_uuid(value) -> Optional[UUID]:
    if value in (None, ""):
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def generate_task_data(pattern: RecurringTask, day: date) -> TaskDraft:
    template = dict(pattern.task_template or {})
    count = (pattern.tasks_generated or 0) + 1
    return TaskDraft(
        recurring_task_id=pattern.id,
        title=_render(template.get("title") or pattern.title, day, count),
        description=_render(template.get("description"), day, count),
        priority=template.get("priority") or "medium",
        due_date=day,
        created_by=pattern.created_by,
        team_id=pattern.team_id,
        assigned_to=_as_uuid(template.get("assigned_to")),
        estimated_time=template.get("estimated_time"),
        tags=list(template.get("tags") or []),
    )


def validate_pattern(pattern: RecurringTask) -> None:
    """Raise PatternValidationError when the recurrence definition is unusable."""
    if pattern.frequency not in FREQUENCIES:
        raise PatternValidationError(
            f"Frequency must be one of {', '.join(FREQUENCIES)}", field="frequency"
        )
    if not isinstance(pattern.interval, int) or pattern.interval < 1:
        raise PatternValidationError("Interval must be a positive integer", field="interval")
    limit = MAX_INTERVAL[pattern.frequency]
    if pattern.interval > limit:
        raise PatternValidationError(
            f"Interval must be at most {limit} for {pattern.frequency} frequency", field="interval"
        )
    if not (pattern.title or "").strip():
        raise PatternValidationError("Title is required", field="title")
    if pattern.skip_weekends is None or pattern.skip_holidays is None:
        raise PatternValidationError("Skip flags must be true or false", field="skip_weekends")
    if pattern.start_date is None:
        raise PatternValidationError("Start date is required", field="start_date")

    days = pattern.days_of_week
    if pattern.frequency == "weekly" and not days:
        raise PatternValidationError(
            "At least one day of week is required for weekly frequency", field="days_of_week"
        )
    if days and any(not isinstance(day, int) or day < 0 or day > 6 for day in days):
        raise PatternValidationError(
            "Days must be between 0 (Sunday) and 6 (Saturday)", field="days_of_week"
        )

    day_of_month = pattern.day_of_month
    if pattern.frequency == "monthly" and day_of_month is None:
        raise PatternValidationError("Day of month is required for monthly frequency", field="day_of_month")
    if day_of_month is not None and (day_of_month == 0 or day_of_month < -1 or day_of_month > 31):
        raise PatternValidationError(
            "Day of month must be between -1 (last day) and 31", field="day_of_month"
        )

    if pattern.end_date is not None and pattern.end_date <= pattern.start_date:
        raise PatternValidationError("End date must be after start date", field="end_date")
    if pattern.max_occurrences is not None and pattern.max_occurrences < 1:
        raise PatternValidationError("Max occurrences must be at least 1", field="max_occurrences")

    template = pattern.task_template or {}
    if not (template.get("title") or "").strip():
        raise PatternValidationError("Task template title is required", field="task_template.title")
    if template.get("priority", "medium") not in PRIORITIES:
        raise PatternValidationError("Invalid priority", field="task_template.priority")
