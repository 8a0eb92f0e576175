from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.core.clock import FrozenClock, get_clock
from cadence.db.deps import get_db
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.db.models.user import User
from cadence.main import app
from cadence.observability import metrics as metrics_module
from cadence.observability import tracing as tracing_module


class _DummyTrace:
    def __init__(self, name, metadata=None):
        self.name = name
        self.metadata = metadata or {}

    def update(self, metadata=None, **kwargs):
        if metadata:
            self.metadata = {**self.metadata, **metadata}

    def end(self):
        pass


class _DummyOpik:
    def __init__(self):
        self.traces = []

    def trace(self, name, metadata=None, **kwargs):
        trace = _DummyTrace(name, metadata)
        self.traces.append(trace)
        return trace


@pytest.fixture()
def sqlite_override():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover - sqlite setup
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    RecurringTask.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    return override_get_db


def test_api_operations_emit_traces_and_metrics(monkeypatch, sqlite_override):
    opik = _DummyOpik()
    monkeypatch.setattr(tracing_module, "get_opik_client", lambda: opik)
    monkeypatch.setattr(metrics_module, "get_opik_client", lambda: opik)
    app.dependency_overrides[get_db] = sqlite_override
    app.dependency_overrides[get_clock] = lambda: FrozenClock(date(2024, 1, 1))

    user_id = str(uuid4())
    try:
        with TestClient(app) as test_client:
            created = test_client.post(
                "/recurring-tasks",
                json={
                    "user_id": user_id,
                    "title": "Backups",
                    "frequency": "daily",
                    "start_date": "2024-01-01",
                    "task_template": {"title": "Check backups"},
                },
                headers={"X-Request-Id": "req-observed"},
            )
            assert created.status_code == 201
            generated = test_client.post(
                f"/recurring-tasks/{created.json()['id']}/generate",
                params={"count": 2},
                json={"user_id": user_id},
            )
            assert generated.status_code == 201
    finally:
        app.dependency_overrides.clear()

    names = [trace.name for trace in opik.traces]
    assert "recurring_task.create" in names
    assert "recurring_task.generate_now" in names
    assert "metric:recurring_task.generate.tasks_created" in names
    assert "metric:recurring_task.generate_now.count" in names

    create_trace = next(trace for trace in opik.traces if trace.name == "recurring_task.create")
    assert create_trace.metadata["request_id"] == "req-observed"
    generate_trace = next(trace for trace in opik.traces if trace.name == "recurring_task.generate_now")
    assert generate_trace.metadata["generated"] == 2
