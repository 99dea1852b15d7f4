"""Planned activity model."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from training_load_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid


class EffortLevel(str, Enum):
    """Planned session effort."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"


class PlannedActivity(Base, UserScopedMixin, TimestampMixin):
    """A session scheduled under a training plan."""

    __tablename__ = "planned_activities"
    __table_args__ = (
        Index("ix_planned_activities_user_date", "user_id", "scheduled_date"),
        {"comment": "Scheduled sessions with estimated load"},
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    training_plan_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("training_plans.id", ondelete="SET NULL"),
        index=True,
    )

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    activity_category: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    estimated_duration_seconds: Mapped[float | None] = mapped_column(Float)
    effort_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EffortLevel.MODERATE.value,
    )
    estimated_tss: Mapped[float | None] = mapped_column(
        Float,
        comment="Explicit TSS estimate; derived from duration and effort when absent",
    )

    def __repr__(self) -> str:
        return f"<PlannedActivity(user_id={self.user_id}, date={self.scheduled_date})>"
