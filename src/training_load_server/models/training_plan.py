"""Training plan model."""

from typing import Any

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from training_load_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid


class TrainingPlan(Base, UserScopedMixin, TimestampMixin):
    """Stored training plan.

    The structure column holds a validated periodized or maintenance plan.
    At most one plan per athlete is active; superseded plans are
    deactivated rather than deleted.
    """

    __tablename__ = "training_plans"
    __table_args__ = {"comment": "Athlete training plans (periodized or maintenance)"}

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    plan_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="periodized or maintenance",
    )
    structure: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Validated plan structure",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    def __repr__(self) -> str:
        return f"<TrainingPlan(user_id={self.user_id}, name={self.name}, active={self.is_active})>"
