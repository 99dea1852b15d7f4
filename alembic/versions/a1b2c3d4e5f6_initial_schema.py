"""Initial schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

Creates the four athlete-scoped tables:
1. activities: completed sessions with a derived metrics bag
2. athlete_baselines: append-only physiological baseline log
3. training_plans: periodized or maintenance plan structures
4. planned_activities: scheduled sessions, optionally under a plan
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "activities",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("activity_category", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=False),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("metrics", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        comment="Completed training sessions with derived load metrics",
    )
    op.create_index(op.f("ix_activities_user_id"), "activities", ["user_id"], unique=False)
    op.create_index(
        "ix_activities_user_started", "activities", ["user_id", "started_at"], unique=False
    )

    op.create_table(
        "athlete_baselines",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("metric_type", sa.String(length=30), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        comment="Append-only log of athlete physiological baselines",
    )
    op.create_index(
        op.f("ix_athlete_baselines_user_id"), "athlete_baselines", ["user_id"], unique=False
    )
    op.create_index(
        "ix_athlete_baselines_lookup",
        "athlete_baselines",
        ["user_id", "metric_type", "category", "recorded_at"],
        unique=False,
    )

    op.create_table(
        "training_plans",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("plan_type", sa.String(length=20), nullable=False),
        sa.Column("structure", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        comment="Athlete training plans (periodized or maintenance)",
    )
    op.create_index(
        op.f("ix_training_plans_user_id"), "training_plans", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_training_plans_is_active"), "training_plans", ["is_active"], unique=False
    )

    op.create_table(
        "planned_activities",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("training_plan_id", sa.String(length=36), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("activity_category", sa.String(length=20), nullable=False),
        sa.Column("estimated_duration_seconds", sa.Float(), nullable=True),
        sa.Column("effort_level", sa.String(length=20), nullable=False),
        sa.Column("estimated_tss", sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["training_plan_id"], ["training_plans.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        comment="Scheduled sessions with estimated load",
    )
    op.create_index(
        op.f("ix_planned_activities_user_id"), "planned_activities", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_planned_activities_training_plan_id"),
        "planned_activities",
        ["training_plan_id"],
        unique=False,
    )
    op.create_index(
        "ix_planned_activities_user_date",
        "planned_activities",
        ["user_id", "scheduled_date"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("planned_activities")
    op.drop_table("training_plans")
    op.drop_table("athlete_baselines")
    op.drop_table("activities")
