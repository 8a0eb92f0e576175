from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from cadence.db.models.recurring_task import RecurringTask
from cadence.services.errors import PatternValidationError
from cadence.services.recurrence import (
    calculate_next_occurrence,
    first_occurrence,
    generate_task_data,
    initial_cursor,
    next_occurrence_or_none,
    recompute_cursor,
    should_generate_task,
    validate_pattern,
    weekday_number,
)


def _pattern(**overrides) -> RecurringTask:
    values = dict(
        id=uuid4(),
        title="Standup",
        frequency="daily",
        interval=1,
        days_of_week=None,
        day_of_month=None,
        start_date=date(2024, 1, 1),
        end_date=None,
        max_occurrences=None,
        skip_dates=[],
        skip_weekends=False,
        skip_holidays=False,
        paused=False,
        tasks_generated=0,
        last_generated_date=None,
        next_generation_date=None,
        task_template={"title": "Standup", "priority": "medium"},
        created_by=uuid4(),
        team_id=None,
    )
    values.update(overrides)
    return RecurringTask(**values)


def test_weekday_numbers_start_on_sunday():
    assert weekday_number(date(2024, 1, 7)) == 0
    assert weekday_number(date(2024, 1, 1)) == 1
    assert weekday_number(date(2024, 1, 6)) == 6


def test_daily_interval_steps_by_days():
    pattern = _pattern(interval=3)

    assert calculate_next_occurrence(pattern, date(2024, 1, 1)) == date(2024, 1, 4)


def test_weekly_interval_one_walks_listed_weekdays():
    pattern = _pattern(frequency="weekly", days_of_week=[1, 3])

    assert calculate_next_occurrence(pattern, date(2024, 1, 1)) == date(2024, 1, 3)
    assert calculate_next_occurrence(pattern, date(2024, 1, 3)) == date(2024, 1, 8)


def test_weekly_interval_two_skips_off_weeks():
    pattern = _pattern(frequency="weekly", interval=2, days_of_week=[1, 3])

    assert calculate_next_occurrence(pattern, date(2024, 1, 1)) == date(2024, 1, 3)
    assert calculate_next_occurrence(pattern, date(2024, 1, 3)) == date(2024, 1, 15)
    assert calculate_next_occurrence(pattern, date(2024, 1, 15)) == date(2024, 1, 17)


def test_monthly_day_31_clamps_to_february():
    pattern = _pattern(frequency="monthly", day_of_month=31, start_date=date(2024, 1, 31))

    assert calculate_next_occurrence(pattern, date(2024, 1, 31)) == date(2024, 2, 29)
    assert calculate_next_occurrence(pattern, date(2024, 2, 29)) == date(2024, 3, 31)

    non_leap = _pattern(frequency="monthly", day_of_month=31, start_date=date(2023, 1, 31))
    assert calculate_next_occurrence(non_leap, date(2023, 1, 31)) == date(2023, 2, 28)


def test_monthly_last_day_sentinel():
    pattern = _pattern(frequency="monthly", day_of_month=-1, start_date=date(2024, 1, 31))

    assert calculate_next_occurrence(pattern, date(2024, 1, 31)) == date(2024, 2, 29)
    assert calculate_next_occurrence(pattern, date(2024, 3, 31)) == date(2024, 4, 30)


def test_yearly_feb_29_falls_back_to_feb_28():
    pattern = _pattern(frequency="yearly", start_date=date(2024, 2, 29))

    assert calculate_next_occurrence(pattern, date(2024, 2, 29)) == date(2025, 2, 28)

    biennial = _pattern(frequency="yearly", interval=4, start_date=date(2024, 2, 29))
    assert calculate_next_occurrence(biennial, date(2024, 2, 29)) == date(2028, 2, 29)


def test_first_occurrence_stays_on_cadence():
    daily = _pattern(interval=2)
    assert first_occurrence(daily, date(2024, 1, 4)) == date(2024, 1, 5)
    assert first_occurrence(daily, date(2023, 12, 1)) == date(2024, 1, 1)

    monthly = _pattern(frequency="monthly", interval=2, day_of_month=15, start_date=date(2024, 1, 15))
    assert first_occurrence(monthly, date(2024, 2, 1)) == date(2024, 3, 15)

    weekly = _pattern(frequency="weekly", days_of_week=[1, 3])
    assert first_occurrence(weekly, date(2024, 1, 1)) == date(2024, 1, 1)


def test_recompute_and_initial_cursor():
    pattern = _pattern(frequency="weekly", days_of_week=[1, 3])

    assert recompute_cursor(pattern, date(2024, 1, 4)) == date(2024, 1, 8)

    pattern.last_generated_date = date(2024, 1, 8)
    assert recompute_cursor(pattern, date(2024, 1, 8)) == date(2024, 1, 10)
    assert initial_cursor(pattern, date(2024, 1, 1)) == date(2024, 1, 10)


def test_should_generate_task_predicate():
    pattern = _pattern(skip_dates=["2024-01-02"], end_date=date(2024, 2, 1))

    assert should_generate_task(pattern, date(2024, 1, 1)) is True
    assert should_generate_task(pattern, date(2024, 1, 2)) is False
    assert should_generate_task(pattern, date(2024, 2, 1)) is False

    pattern.skip_weekends = True
    assert should_generate_task(pattern, date(2024, 1, 6)) is False
    assert should_generate_task(pattern, date(2024, 1, 7)) is False

    pattern.skip_holidays = True
    assert should_generate_task(pattern, date(2024, 1, 3), lambda day: day == date(2024, 1, 3)) is False

    pattern.paused = True
    assert should_generate_task(pattern, date(2024, 1, 4)) is False


def test_should_generate_task_honours_max_occurrences():
    pattern = _pattern(max_occurrences=2, tasks_generated=2)

    assert should_generate_task(pattern, date(2024, 1, 5)) is False


def test_generate_task_data_renders_template():
    assignee = uuid4()
    pattern = _pattern(
        tasks_generated=2,
        team_id=uuid4(),
        task_template={
            "title": "Report #{{count}}",
            "description": "Due {{date}}",
            "priority": "high",
            "assigned_to": str(assignee),
            "tags": ["ops"],
            "estimated_time": 30,
        },
    )

    draft = generate_task_data(pattern, date(2024, 1, 3))

    assert draft.title == "Report #3"
    assert draft.description == "Due 2024-01-03"
    assert draft.priority == "high"
    assert draft.assigned_to == assignee
    assert draft.due_date == date(2024, 1, 3)
    assert draft.recurring_task_id == pattern.id
    assert draft.team_id == pattern.team_id
    assert draft.tags == ["ops"]
    assert draft.status == "pending"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"frequency": "hourly"}, "frequency"),
        ({"interval": 0}, "interval"),
        ({"frequency": "weekly", "days_of_week": [1], "interval": 521}, "interval"),
        ({"frequency": "yearly", "interval": 101}, "interval"),
        ({"title": "  "}, "title"),
        ({"skip_weekends": None}, "skip_weekends"),
        ({"frequency": "weekly", "days_of_week": []}, "days_of_week"),
        ({"frequency": "weekly", "days_of_week": [7]}, "days_of_week"),
        ({"frequency": "monthly", "day_of_month": None}, "day_of_month"),
        ({"frequency": "monthly", "day_of_month": 0}, "day_of_month"),
        ({"frequency": "monthly", "day_of_month": 32}, "day_of_month"),
        ({"end_date": date(2024, 1, 1)}, "end_date"),
        ({"max_occurrences": 0}, "max_occurrences"),
        ({"task_template": {"title": " "}}, "task_template.title"),
    ],
)
def test_validate_pattern_rejects_bad_definitions(overrides, field):
    with pytest.raises(PatternValidationError) as excinfo:
        validate_pattern(_pattern(**overrides))

    assert excinfo.value.field == field


def test_validate_pattern_accepts_last_day_sentinel():
    validate_pattern(_pattern(frequency="monthly", day_of_month=-1))


def test_next_occurrence_or_none_at_the_end_of_the_calendar():
    pattern = _pattern(frequency="yearly", interval=2, start_date=date(9998, 6, 1))

    assert next_occurrence_or_none(pattern, date(9996, 6, 1)) == date(9998, 6, 1)
    assert next_occurrence_or_none(pattern, date(9998, 6, 1)) is None
    assert next_occurrence_or_none(_pattern(), date(9999, 12, 31)) is None
