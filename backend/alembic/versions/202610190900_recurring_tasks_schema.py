"""Recurring task patterns and generated tasks."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "recurring_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("interval", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("days_of_week", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("max_occurrences", sa.Integer(), nullable=True),
        sa.Column("skip_dates", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("skip_weekends", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("skip_holidays", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("paused", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("tasks_generated", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_generated_date", sa.Date(), nullable=True),
        sa.Column("next_generation_date", sa.Date(), nullable=True),
        sa.Column("task_template", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_recurring_tasks_created_by", "recurring_tasks", ["created_by"], unique=False)
    op.create_index("ix_recurring_tasks_team_id", "recurring_tasks", ["team_id"], unique=False)
    op.create_index(
        "ix_recurring_tasks_next_generation_date",
        "recurring_tasks",
        ["next_generation_date"],
        unique=False,
    )
    op.create_index("ix_recurring_tasks_paused", "recurring_tasks", ["paused"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("recurring_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default=sa.text("'medium'")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("tags", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("estimated_time", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("recurring_task_id", "due_date", name="uq_tasks_recurring_task_due_date"),
    )
    op.create_index("ix_tasks_recurring_task_id", "tasks", ["recurring_task_id"], unique=False)
    op.create_index("ix_tasks_created_by", "tasks", ["created_by"], unique=False)
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_status", table_name="tasks")
    op.drop_index("ix_tasks_created_by", table_name="tasks")
    op.drop_index("ix_tasks_recurring_task_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_recurring_tasks_paused", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_next_generation_date", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_team_id", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_created_by", table_name="recurring_tasks")
    op.drop_table("recurring_tasks")

    op.drop_table("users")
