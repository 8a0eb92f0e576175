from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.db.models.recurring_task import RecurringTask
from cadence.db.models.task import Task
from cadence.db.models.user import User
from cadence.services.recurring_task_service import get_stats


def _session():
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

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    RecurringTask.__table__.create(bind=engine)
    Task.__table__.create(bind=engine)
    return TestingSession


def _seed(db_session):
    session = db_session()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        pattern = RecurringTask(
            title="Standup",
            frequency="daily",
            interval=1,
            start_date=date(2024, 1, 1),
            next_generation_date=date(2024, 1, 5),
            tasks_generated=4,
            task_template={"title": "Standup"},
            created_by=user_id,
        )
        session.add(pattern)
        session.flush()

        created = datetime(2024, 1, 1, 9, tzinfo=timezone.utc)
        rows = [
            ("completed", date(2024, 1, 1), created + timedelta(hours=2)),
            ("completed", date(2024, 1, 2), created + timedelta(hours=4)),
            ("pending", date(2024, 1, 3), None),
            ("in_progress", date(2024, 1, 20), None),
        ]
        for status, due, completed_at in rows:
            session.add(
                Task(
                    recurring_task_id=pattern.id,
                    title="Standup",
                    status=status,
                    due_date=due,
                    created_by=user_id,
                    created_at=created,
                    completed_at=completed_at,
                )
            )
        session.commit()
        return pattern.id
    finally:
        session.close()


def test_stats_summarize_generated_tasks():
    db_session = _session()
    pattern_id = _seed(db_session)
    db = db_session()
    try:
        stats = get_stats(db, pattern_id, now=datetime(2024, 1, 10, 12, tzinfo=timezone.utc))
    finally:
        db.close()

    assert stats.total == 4
    assert stats.completed == 2
    assert stats.pending == 1
    assert stats.in_progress == 1
    assert stats.overdue == 1
    assert stats.completion_rate == 50.0
    assert stats.avg_completion_time_hours == 3.0
    assert stats.tasks_generated == 4
    assert stats.next_generation_date == date(2024, 1, 5)


def test_stats_for_pattern_without_tasks():
    db_session = _session()
    session = db_session()
    try:
        user_id = uuid4()
        session.add(User(id=user_id))
        pattern = RecurringTask(
            title="Quiet",
            frequency="daily",
            interval=1,
            start_date=date(2024, 1, 1),
            task_template={"title": "Quiet"},
            created_by=user_id,
        )
        session.add(pattern)
        session.commit()

        stats = get_stats(session, pattern.id, now=datetime(2024, 1, 10, tzinfo=timezone.utc))
    finally:
        session.close()

    assert stats.total == 0
    assert stats.completion_rate == 0.0
    assert stats.avg_completion_time_hours == 0.0
