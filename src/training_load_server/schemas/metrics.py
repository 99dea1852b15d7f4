"""Typed view over the activity metrics bag."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TssSource(str, Enum):
    """Signal a TSS value was derived from."""

    POWER = "power"
    HEART_RATE = "heart_rate"
    PACE = "pace"


class Confidence(str, Enum):
    """Confidence in a derived value."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BestEffort(BaseModel):
    """Best average value over a fixed window."""

    effort_type: str = Field(description="power, speed or heart_rate")
    duration_seconds: int
    value: float
    start_offset_seconds: float


class ActivityMetrics(BaseModel):
    """Derived metrics of one activity.

    Every field is optional. None means "not computed", which is distinct
    from zero; merges only touch fields that are set.
    """

    model_config = ConfigDict(extra="allow")

    training_stress_score: float | None = Field(default=None, ge=0)
    intensity_factor: float | None = Field(default=None, ge=0, description="Decimal ratio")
    tss_source: TssSource | None = None
    confidence: Confidence | None = None
    scored: bool | None = None

    normalized_power: float | None = Field(default=None, ge=0)
    normalized_speed: float | None = Field(default=None, ge=0, description="m/s")
    normalized_pace: float | None = Field(default=None, ge=0, description="s/km or s/100m")
    average_power: float | None = Field(default=None, ge=0)
    average_heart_rate: float | None = Field(default=None, ge=0)
    max_heart_rate: float | None = Field(default=None, ge=0)
    variability_index: float | None = Field(default=None, ge=0)
    efficiency_factor: float | None = None
    aerobic_decoupling: float | None = None

    hr_zone_seconds: list[int] | None = None
    power_zone_seconds: list[int] | None = None
    best_efforts: list[BestEffort] | None = None

    training_effect: str | None = None
    defaults_used: list[str] | None = None
    baseline_snapshot: dict[str, float] | None = None

    @field_validator("hr_zone_seconds")
    @classmethod
    def _five_hr_zones(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and len(value) != 5:
            raise ValueError("hr_zone_seconds must have 5 entries")
        return value

    @field_validator("power_zone_seconds")
    @classmethod
    def _six_power_zones(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and len(value) != 6:
            raise ValueError("power_zone_seconds must have 6 entries")
        return value

    def to_bag(self) -> dict[str, Any]:
        """Only the fields that are set, JSON-ready."""
        return self.model_dump(mode="json", exclude_none=True)
