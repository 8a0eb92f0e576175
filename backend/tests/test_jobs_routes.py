from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.core.clock import FrozenClock, get_clock
from cadence.core.config import settings
from cadence.db.deps import get_db
from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.db.models.user import User
from cadence.main import app


def _engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    User.__table__.create(bind=engine)
    RecurringTask.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    return engine


@pytest.fixture()
def client(monkeypatch):
    TestingSessionLocal = sessionmaker(bind=_engine(), autoflush=False, autocommit=False, future=True)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: FrozenClock(date(2024, 1, 3))
    monkeypatch.setattr(settings, "debug", True)
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _seed_pattern(session_factory, **overrides):
    session = session_factory()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        values = dict(
            title="Standup",
            frequency="daily",
            interval=1,
            start_date=date(2024, 1, 1),
            next_generation_date=date(2024, 1, 2),
            task_template={"title": "Standup"},
            created_by=user_id,
        )
        values.update(overrides)
        pattern = RecurringTask(**values)
        session.add(pattern)
        session.commit()
        return pattern.id
    finally:
        session.close()


def test_jobs_config(client):
    test_client, _ = client

    resp = test_client.get("/jobs")

    assert resp.status_code == 200
    data = resp.json()
    assert "scheduler_enabled" in data
    assert data["schedule"]["generate_every_minutes"] == settings.scheduler_interval_minutes
    assert data["limits"]["generate_now_max_count"] == settings.generate_now_max_count
    assert data["request_id"]


def test_run_now_generate_and_maintenance(client):
    test_client, session_factory = client
    due_id = _seed_pattern(session_factory)
    _seed_pattern(session_factory, next_generation_date=None)
    _seed_pattern(session_factory, max_occurrences=1, tasks_generated=1)

    generate = test_client.post("/jobs/run-now", json={"job": "generate"})
    assert generate.status_code == 200
    data = generate.json()
    assert data["job"] == "generate"
    assert data["patterns_processed"] == 2
    assert data["tasks_generated"] == 1
    assert data["request_id"]

    maintenance = test_client.post("/jobs/run-now", json={"job": "maintenance"})
    assert maintenance.status_code == 200
    assert maintenance.json()["cursors_backfilled"] == 1
    assert maintenance.json()["patterns_paused"] == 1

    session = session_factory()
    try:
        assert session.get(RecurringTask, due_id).next_generation_date == date(2024, 1, 3)
    finally:
        session.close()


def test_jobs_run_now_forbidden_in_prod(client, monkeypatch):
    test_client, _ = client
    monkeypatch.setattr(settings, "debug", False)

    resp = test_client.post("/jobs/run-now", json={"job": "generate"})

    assert resp.status_code == 403
