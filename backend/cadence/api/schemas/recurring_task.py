"""Schemas for recurring task endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cadence.services.recurrence import MAX_INTERVAL

Frequency = Literal["daily", "weekly", "monthly", "yearly"]
Priority = Literal["low", "medium", "high", "urgent"]
# Columns that may be left out of a patch but never cleared.
NOT_NULL_PATCH_FIELDS = ("title", "frequency", "interval", "start_date", "skip_weekends", "skip_holidays")


class TaskTemplatePayload(BaseModel):
    title: str
    description: Optional[str] = None
    priority: Priority = "medium"
    assigned_to: Optional[UUID] = None
    tags: List[str] = Field(default_factory=list)
    estimated_time: Optional[int] = Field(default=None, ge=0)


class TaskTemplatePatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    assigned_to: Optional[UUID] = None
    tags: Optional[List[str]] = None
    estimated_time: Optional[int] = Field(default=None, ge=0)


class RecurringTaskCreateRequest(BaseModel):
    user_id: UUID
    team_id: Optional[UUID] = None
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    frequency: Frequency
    interval: int = Field(default=1, ge=1, le=max(MAX_INTERVAL.values()))
    days_of_week: Optional[List[int]] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    skip_dates: List[date] = Field(default_factory=list)
    skip_weekends: bool = False
    skip_holidays: bool = False
    paused: bool = False
    task_template: TaskTemplatePayload


class RecurringTaskUpdateRequest(BaseModel):
    user_id: UUID
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    team_id: Optional[UUID] = None
    frequency: Optional[Frequency] = None
    interval: Optional[int] = Field(default=None, ge=1, le=max(MAX_INTERVAL.values()))
    days_of_week: Optional[List[int]] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    skip_dates: Optional[List[date]] = None
    skip_weekends: Optional[bool] = None
    skip_holidays: Optional[bool] = None
    task_template: Optional[TaskTemplatePatch] = None

    @field_validator(*NOT_NULL_PATCH_FIELDS)
    @classmethod
    def reject_explicit_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but cannot be null")
        return value


class PatternActionRequest(BaseModel):
    user_id: UUID


class SkipDateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID
    day: date = Field(alias="date")


class RecurringTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str]
    frequency: str
    interval: int
    days_of_week: Optional[List[int]]
    day_of_month: Optional[int]
    start_date: date
    end_date: Optional[date]
    max_occurrences: Optional[int]
    skip_dates: Optional[List[date]]
    skip_weekends: bool
    skip_holidays: bool
    paused: bool
    tasks_generated: int
    last_generated_date: Optional[date]
    next_generation_date: Optional[date]
    task_template: dict
    created_by: UUID
    team_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime
    request_id: str = ""


class GeneratedTaskPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recurring_task_id: Optional[UUID]
    title: str
    description: Optional[str]
    priority: str
    status: str
    assigned_to: Optional[UUID]
    due_date: Optional[date]
    tags: Optional[List[str]]
    estimated_time: Optional[int]
    created_at: datetime


class RecurringTaskDetailResponse(BaseModel):
    recurring_task: RecurringTaskResponse
    generated_tasks: List[GeneratedTaskPayload]
    request_id: str


class GenerateNowResponse(BaseModel):
    recurring_task_id: UUID
    count: int
    tasks: List[GeneratedTaskPayload]
    next_generation_date: Optional[date]
    safety_limit_reached: bool
    request_id: str


class RecurringTaskStatsResponse(BaseModel):
    recurring_task_id: UUID
    total: int
    completed: int
    pending: int
    in_progress: int
    overdue: int
    completion_rate: float
    avg_completion_time_hours: float
    tasks_generated: int
    next_generation_date: Optional[date]
    request_id: str


class RecurringTaskDeleteResponse(BaseModel):
    id: UUID
    deleted: bool
    generated_tasks_deleted: int
    request_id: str
