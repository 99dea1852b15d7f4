"""Athlete physiological baseline model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from training_load_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid


class BaselineMetric(str, Enum):
    """Canonical physiological baseline names."""

    FTP = "ftp"
    LTHR = "lthr"
    MAX_HR = "max_hr"
    RESTING_HR = "resting_hr"
    VO2MAX = "vo2max"
    THRESHOLD_PACE = "threshold_pace"
    CSS = "css"
    WEIGHT_KG = "weight_kg"


class BaselineCategory(str, Enum):
    """Sport scope of a baseline. General applies to all sports."""

    BIKE = "bike"
    RUN = "run"
    SWIM = "swim"
    GENERAL = "general"


class BaselineSource(str, Enum):
    """Provenance of a baseline value."""

    MEASURED = "measured"
    ESTIMATED = "estimated"
    DEFAULT = "default"


class AthleteBaseline(Base, UserScopedMixin, TimestampMixin):
    """Time-stamped baseline entry.

    Append-only: a new entry supersedes older ones for the same metric and
    category from its recorded_at onward. Entries are never updated in place.
    """

    __tablename__ = "athlete_baselines"
    __table_args__ = (
        Index("ix_athlete_baselines_lookup", "user_id", "metric_type", "category", "recorded_at"),
        {"comment": "Append-only log of athlete physiological baselines"},
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    metric_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="ftp, lthr, max_hr, resting_hr, vo2max, threshold_pace, css, weight_kg",
    )
    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BaselineCategory.GENERAL.value,
        comment="bike, run, swim or general",
    )
    value: Mapped[float] = mapped_column(Float, nullable=False, comment="Baseline value")
    unit: Mapped[str | None] = mapped_column(String(20), comment="W, bpm, s/km, s/100m, kg")
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BaselineSource.MEASURED.value,
        comment="measured, estimated or default",
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Effective-from time of this value",
    )

    def __repr__(self) -> str:
        return (
            f"<AthleteBaseline(user_id={self.user_id}, metric={self.metric_type}, "
            f"value={self.value}, recorded_at={self.recorded_at})>"
        )
