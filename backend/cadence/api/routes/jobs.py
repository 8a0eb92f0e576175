"""Operational endpoints for the recurring task scheduler."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session, sessionmaker

from cadence.api.schemas.jobs import JobRunRequest, JobRunResponse
from cadence.core.clock import Clock, get_clock
from cadence.core.config import settings
from cadence.db.deps import get_db
from cadence.observability.metrics import log_metric
from cadence.observability.tracing import trace
from cadence.services.scheduler import RecurringTaskScheduler

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "generate_every_minutes": settings.scheduler_interval_minutes,
                "maintenance_every_minutes": settings.maintenance_interval_minutes,
                "run_on_startup": settings.jobs_run_on_startup,
            },
            "limits": {
                "generate_now_max_count": settings.generate_now_max_count,
                "advance_factor": settings.generation_advance_factor,
                "horizon_days": settings.generation_horizon_days,
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    # Runs on the request's engine so the pass sees the same database.
    scheduler = RecurringTaskScheduler(
        sessionmaker(bind=db.get_bind(), autoflush=False, autocommit=False, future=True),
        clock=clock,
    )
    start = perf_counter()
    with trace("jobs.run_now", metadata={"job": payload.job}, request_id=request_id):
        if payload.job == "generate":
            sweep = scheduler.run_tick()
            response = JobRunResponse(
                job=payload.job,
                patterns_processed=sweep.patterns_processed,
                tasks_generated=sweep.tasks_generated,
                failures=sweep.failures,
                request_id=request_id or "",
            )
        else:
            maintenance = scheduler.run_maintenance()
            response = JobRunResponse(
                job=payload.job,
                cursors_backfilled=maintenance.cursors_backfilled,
                patterns_paused=maintenance.paused,
                failures=maintenance.failures,
                request_id=request_id or "",
            )

    latency_ms = (perf_counter() - start) * 1000
    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})
    log_metric("jobs.run_now.latency_ms", latency_ms, metadata={"job": payload.job})
    return response
