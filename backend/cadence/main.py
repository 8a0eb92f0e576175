"""Main FastAPI application for the Cadence recurring task backend."""
from fastapi import FastAPI, Request

from cadence.api.routes.jobs import router as jobs_router
from cadence.api.routes.recurring_tasks import router as recurring_tasks_router
from cadence.core.config import settings
from cadence.core.logging import configure_logging
from cadence.core.middleware import RequestIDMiddleware
from cadence.observability.client import flush_opik, init_opik
from cadence.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(recurring_tasks_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("shutdown")
async def shutdown_observability() -> None:
    """Flush buffered traces before the process exits."""
    flush_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Report liveness plus whether the scheduler is configured to run."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {
            "status": "ok",
            "scheduler": "enabled" if settings.scheduler_enabled else "disabled",
        }
