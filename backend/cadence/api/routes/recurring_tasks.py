"""Recurring task pattern API routes."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from time import perf_counter
from typing import Any, Dict, Iterator, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from cadence.api.schemas.recurring_task import (
    Frequency,
    GeneratedTaskPayload,
    GenerateNowResponse,
    PatternActionRequest,
    RecurringTaskCreateRequest,
    RecurringTaskDeleteResponse,
    RecurringTaskDetailResponse,
    RecurringTaskResponse,
    RecurringTaskStatsResponse,
    RecurringTaskUpdateRequest,
    SkipDateRequest,
)
from cadence.core.clock import Clock, get_clock
from cadence.db.deps import get_db
from cadence.db.models.recurring_task import RecurringTask
from cadence.observability.metrics import log_metric
from cadence.observability.tracing import trace
from cadence.services import recurring_task_service as service
from cadence.services.errors import ConcurrencyConflict, PatternNotFoundError, PatternValidationError

router = APIRouter()


@router.post(
    "/recurring-tasks",
    response_model=RecurringTaskResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["recurring-tasks"],
)
def create_recurring_task(
    payload: RecurringTaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RecurringTaskResponse:
    """Store a new recurring pattern and seed its next generation date."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/recurring-tasks",
        "user_id": str(payload.user_id),
        "frequency": payload.frequency,
        "interval": payload.interval,
        "request_id": request_id,
    }

    success = False
    try:
        with trace("recurring_task.create", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
            with _domain_errors():
                pattern = service.create_pattern(db, payload, today=clock.today())
            success = True
    finally:
        log_metric(
            "recurring_task.create.success",
            1 if success else 0,
            metadata={"user_id": str(payload.user_id), "frequency": payload.frequency},
        )

    return _serialize_pattern(pattern, request_id)


@router.get("/recurring-tasks", response_model=List[RecurringTaskResponse], tags=["recurring-tasks"])
def list_recurring_tasks(
    http_request: Request,
    user_id: Optional[UUID] = Query(default=None, description="Owner of the patterns"),
    team_id: Optional[UUID] = Query(default=None),
    frequency: Optional[Frequency] = Query(default=None),
    include_paused: bool = Query(default=True),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> List[RecurringTaskResponse]:
    """List patterns for a user or a team."""
    if user_id is None and team_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide user_id or team_id",
        )

    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/recurring-tasks",
        "user_id": str(user_id) if user_id else None,
        "team_id": str(team_id) if team_id else None,
        "frequency": frequency,
        "request_id": request_id,
    }
    with trace("recurring_task.list", metadata=metadata, user_id=str(user_id) if user_id else None, request_id=request_id):
        patterns = service.list_patterns(
            db,
            created_by=user_id,
            team_id=team_id,
            frequency=frequency,
            include_paused=include_paused,
            limit=limit,
            offset=offset,
        )

    log_metric("recurring_task.list.count", len(patterns), metadata={"frequency": frequency or "all"})
    return [_serialize_pattern(pattern, request_id) for pattern in patterns]


@router.get(
    "/recurring-tasks/{recurring_task_id}",
    response_model=RecurringTaskDetailResponse,
    tags=["recurring-tasks"],
)
def get_recurring_task(
    recurring_task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Owner of the pattern"),
    db: Session = Depends(get_db),
) -> RecurringTaskDetailResponse:
    """Return a pattern with its five most recent generated tasks."""
    pattern = _load_owned(db, recurring_task_id, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.get",
        metadata={"recurring_task_id": str(recurring_task_id)},
        user_id=str(user_id),
        request_id=request_id,
    ):
        recent = service.recent_generated_tasks(db, recurring_task_id)

    return RecurringTaskDetailResponse(
        recurring_task=_serialize_pattern(pattern, request_id),
        generated_tasks=[GeneratedTaskPayload.model_validate(task) for task in recent],
        request_id=request_id or "",
    )


@router.patch(
    "/recurring-tasks/{recurring_task_id}",
    response_model=RecurringTaskResponse,
    tags=["recurring-tasks"],
)
def update_recurring_task(
    recurring_task_id: UUID,
    payload: RecurringTaskUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RecurringTaskResponse:
    """Apply a partial update; recurrence changes recompute the next generation date."""
    _load_owned(db, recurring_task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    fields = sorted(payload.model_dump(exclude_unset=True, exclude={"user_id"}))
    metadata: Dict[str, Any] = {
        "route": f"/recurring-tasks/{recurring_task_id}",
        "recurring_task_id": str(recurring_task_id),
        "fields": fields,
        "request_id": request_id,
    }

    start = perf_counter()
    with trace("recurring_task.update", metadata=metadata, user_id=str(payload.user_id), request_id=request_id):
        with _domain_errors():
            pattern = service.update_pattern(db, recurring_task_id, payload, today=clock.today())

    log_metric(
        "recurring_task.update.latency_ms",
        (perf_counter() - start) * 1000,
        metadata={"recurring_task_id": str(recurring_task_id)},
    )
    return _serialize_pattern(pattern, request_id)


@router.delete(
    "/recurring-tasks/{recurring_task_id}",
    response_model=RecurringTaskDeleteResponse,
    tags=["recurring-tasks"],
)
def delete_recurring_task(
    recurring_task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Owner of the pattern"),
    delete_generated: bool = Query(default=False, description="Also delete tasks generated by the pattern"),
    db: Session = Depends(get_db),
) -> RecurringTaskDeleteResponse:
    """Delete a pattern, optionally with every task it generated."""
    _load_owned(db, recurring_task_id, user_id)
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "recurring_task_id": str(recurring_task_id),
        "delete_generated": delete_generated,
    }

    with trace("recurring_task.delete", metadata=metadata, user_id=str(user_id), request_id=request_id):
        with _domain_errors():
            removed = service.delete_pattern(db, recurring_task_id, cascade_delete_generated=delete_generated)

    log_metric("recurring_task.delete.generated_removed", removed, metadata=metadata)
    return RecurringTaskDeleteResponse(
        id=recurring_task_id,
        deleted=True,
        generated_tasks_deleted=removed,
        request_id=request_id or "",
    )


@router.post(
    "/recurring-tasks/{recurring_task_id}/pause",
    response_model=RecurringTaskResponse,
    tags=["recurring-tasks"],
)
def pause_recurring_task(
    recurring_task_id: UUID,
    payload: PatternActionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> RecurringTaskResponse:
    _load_owned(db, recurring_task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.pause",
        metadata={"recurring_task_id": str(recurring_task_id)},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        with _domain_errors():
            pattern = service.pause_pattern(db, recurring_task_id)

    log_metric("recurring_task.pause.success", 1, metadata={"recurring_task_id": str(recurring_task_id)})
    return _serialize_pattern(pattern, request_id)


@router.post(
    "/recurring-tasks/{recurring_task_id}/resume",
    response_model=RecurringTaskResponse,
    tags=["recurring-tasks"],
)
def resume_recurring_task(
    recurring_task_id: UUID,
    payload: PatternActionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RecurringTaskResponse:
    """Unpause a pattern; a pattern already due generates its next task immediately."""
    _load_owned(db, recurring_task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.resume",
        metadata={"recurring_task_id": str(recurring_task_id)},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        with _domain_errors():
            pattern = service.resume_pattern(db, recurring_task_id, today=clock.today())

    log_metric("recurring_task.resume.success", 1, metadata={"recurring_task_id": str(recurring_task_id)})
    return _serialize_pattern(pattern, request_id)


@router.post(
    "/recurring-tasks/{recurring_task_id}/generate",
    response_model=GenerateNowResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["recurring-tasks"],
)
def generate_recurring_task_now(
    recurring_task_id: UUID,
    payload: PatternActionRequest,
    http_request: Request,
    count: int = Query(default=1, description="Number of tasks to generate"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> GenerateNowResponse:
    """Materialize the next `count` occurrences right away."""
    _load_owned(db, recurring_task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": f"/recurring-tasks/{recurring_task_id}/generate",
        "recurring_task_id": str(recurring_task_id),
        "count": count,
        "request_id": request_id,
    }

    start = perf_counter()
    with trace("recurring_task.generate_now", metadata=metadata, user_id=str(payload.user_id), request_id=request_id) as span:
        with _domain_errors():
            result = service.generate_now(db, recurring_task_id, count, today=clock.today())
        if span:
            try:
                span.update(metadata={**metadata, "generated": len(result.tasks)})
            except Exception:
                pass

    log_metric("recurring_task.generate_now.count", len(result.tasks), metadata={"requested": count})
    log_metric("recurring_task.generate_now.latency_ms", (perf_counter() - start) * 1000)
    return GenerateNowResponse(
        recurring_task_id=recurring_task_id,
        count=len(result.tasks),
        tasks=[GeneratedTaskPayload.model_validate(task) for task in result.tasks],
        next_generation_date=result.cursor,
        safety_limit_reached=result.safety_limit_reached,
        request_id=request_id or "",
    )


@router.post(
    "/recurring-tasks/{recurring_task_id}/skip-dates",
    response_model=RecurringTaskResponse,
    tags=["recurring-tasks"],
)
def add_recurring_task_skip_date(
    recurring_task_id: UUID,
    payload: SkipDateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> RecurringTaskResponse:
    _load_owned(db, recurring_task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.skip_date.add",
        metadata={"recurring_task_id": str(recurring_task_id), "date": payload.day.isoformat()},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        with _domain_errors():
            pattern = service.add_skip_date(db, recurring_task_id, payload.day)

    return _serialize_pattern(pattern, request_id)


@router.delete(
    "/recurring-tasks/{recurring_task_id}/skip-dates/{skip_date}",
    response_model=RecurringTaskResponse,
    tags=["recurring-tasks"],
)
def remove_recurring_task_skip_date(
    recurring_task_id: UUID,
    skip_date: date,
    http_request: Request,
    user_id: UUID = Query(..., description="Owner of the pattern"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RecurringTaskResponse:
    _load_owned(db, recurring_task_id, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.skip_date.remove",
        metadata={"recurring_task_id": str(recurring_task_id), "date": skip_date.isoformat()},
        user_id=str(user_id),
        request_id=request_id,
    ):
        with _domain_errors():
            pattern = service.remove_skip_date(db, recurring_task_id, skip_date, today=clock.today())

    return _serialize_pattern(pattern, request_id)


@router.get(
    "/recurring-tasks/{recurring_task_id}/stats",
    response_model=RecurringTaskStatsResponse,
    tags=["recurring-tasks"],
)
def get_recurring_task_stats(
    recurring_task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="Owner of the pattern"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RecurringTaskStatsResponse:
    """Completion statistics across every task generated from the pattern."""
    _load_owned(db, recurring_task_id, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recurring_task.stats",
        metadata={"recurring_task_id": str(recurring_task_id)},
        user_id=str(user_id),
        request_id=request_id,
    ):
        with _domain_errors():
            stats = service.get_stats(db, recurring_task_id, now=clock.now(), tz=clock.tz)

    log_metric(
        "recurring_task.stats.completion_rate",
        stats.completion_rate,
        metadata={"recurring_task_id": str(recurring_task_id)},
    )
    return RecurringTaskStatsResponse(
        recurring_task_id=recurring_task_id,
        total=stats.total,
        completed=stats.completed,
        pending=stats.pending,
        in_progress=stats.in_progress,
        overdue=stats.overdue,
        completion_rate=stats.completion_rate,
        avg_completion_time_hours=stats.avg_completion_time_hours,
        tasks_generated=stats.tasks_generated,
        next_generation_date=stats.next_generation_date,
        request_id=request_id or "",
    )


@contextmanager
def _domain_errors() -> Iterator[None]:
    try:
        yield
    except PatternNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PatternValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.as_detail()) from exc
    except ConcurrencyConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


def _load_owned(db: Session, recurring_task_id: UUID, user_id: UUID) -> RecurringTask:
    pattern = db.get(RecurringTask, recurring_task_id)
    if not pattern:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring task not found")
    if pattern.created_by != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Recurring task does not belong to user")
    return pattern


def _serialize_pattern(pattern: RecurringTask, request_id: Optional[str]) -> RecurringTaskResponse:
    response = RecurringTaskResponse.model_validate(pattern)
    return response.model_copy(update={"request_id": request_id or ""})
