"""Completed activity model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from training_load_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid


class ActivityCategory(str, Enum):
    """Sport category of an activity."""

    RUN = "run"
    BIKE = "bike"
    SWIM = "swim"
    STRENGTH = "strength"
    OTHER = "other"


class Activity(Base, UserScopedMixin, TimestampMixin):
    """A completed training session.

    Computed metrics live in the `metrics` JSON bag and are merged, never
    replaced, when recomputed.
    """

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_user_started", "user_id", "started_at"),
        {"comment": "Completed training sessions with derived load metrics"},
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    name: Mapped[str | None] = mapped_column(String(255), comment="Activity title")
    activity_category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ActivityCategory.OTHER.value,
        comment="run, bike, swim, strength or other",
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Activity start time",
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        comment="Activity end time",
    )
    duration_seconds: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Elapsed duration, always > 0",
    )
    distance_meters: Mapped[float | None] = mapped_column(Float, comment="Distance covered")

    metrics: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Derived metrics bag (TSS, IF, NP, zones, best efforts)",
    )

    @property
    def training_stress_score(self) -> float | None:
        value = (self.metrics or {}).get("training_stress_score")
        return float(value) if value is not None else None

    @property
    def intensity_factor(self) -> float | None:
        value = (self.metrics or {}).get("intensity_factor")
        return float(value) if value is not None else None

    def __repr__(self) -> str:
        return (
            f"<Activity(user_id={self.user_id}, category={self.activity_category}, "
            f"started_at={self.started_at})>"
        )
