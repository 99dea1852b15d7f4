"""Training plan structure schemas.

A stored plan is either periodized (goals broken into dated blocks) or
maintenance (a flat weekly load range). Structural rules are enforced
by model validators so every parsed plan is internally consistent.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

SUM_TOLERANCE = 0.01


class ActivityCategoryName(str, Enum):
    """Sport categories a goal target can reference."""

    RUN = "run"
    BIKE = "bike"
    SWIM = "swim"
    OTHER = "other"


class Phase(str, Enum):
    """Training block phase."""

    BASE = "base"
    BUILD = "build"
    PEAK = "peak"
    TAPER = "taper"
    RECOVERY = "recovery"
    TRANSITION = "transition"


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RacePerformanceTarget(_Strict):
    target_type: Literal["race_performance"] = "race_performance"
    distance_m: float = Field(gt=0)
    target_time_s: float = Field(gt=0)
    activity_category: ActivityCategoryName


class PaceThresholdTarget(_Strict):
    target_type: Literal["pace_threshold"] = "pace_threshold"
    target_speed_mps: float = Field(gt=0)
    test_duration_s: float = Field(gt=0)
    activity_category: ActivityCategoryName


class PowerThresholdTarget(_Strict):
    target_type: Literal["power_threshold"] = "power_threshold"
    target_watts: float = Field(gt=0)
    test_duration_s: float = Field(gt=0)
    activity_category: ActivityCategoryName


class HrThresholdTarget(_Strict):
    target_type: Literal["hr_threshold"] = "hr_threshold"
    target_lthr_bpm: float = Field(gt=0)


GoalTarget = Annotated[
    RacePerformanceTarget | PaceThresholdTarget | PowerThresholdTarget | HrThresholdTarget,
    Field(discriminator="target_type"),
]


class MinimalGoal(_Strict):
    """Goal as entered by an athlete, before normalization."""

    id: str | None = None
    name: str = Field(min_length=1, max_length=100)
    target_date: date
    priority: int | None = Field(default=None, ge=1, le=10)
    targets: list[GoalTarget] = Field(min_length=1)


class TrainingGoal(_Strict):
    """Normalized goal with a deterministic id."""

    id: str
    name: str = Field(min_length=1, max_length=100)
    target_date: date
    priority: int = Field(default=1, ge=1, le=10)
    targets: list[GoalTarget] = Field(min_length=1)


class TssRange(_Strict):
    min: float = Field(ge=0)
    max: float = Field(ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "TssRange":
        if self.max < self.min:
            raise ValueError("max must be greater than or equal to min")
        return self


class SessionRange(_Strict):
    min: int = Field(ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "SessionRange":
        if self.max < self.min:
            raise ValueError("max must be greater than or equal to min")
        return self


class IntensityDistribution(_Strict):
    """Fractions of weekly time at each effort; sums to 1."""

    easy: float = Field(ge=0, le=1)
    moderate: float = Field(ge=0, le=1)
    hard: float = Field(ge=0, le=1)

    @model_validator(mode="after")
    def _sums_to_one(self) -> "IntensityDistribution":
        total = self.easy + self.moderate + self.hard
        if abs(total - 1.0) > SUM_TOLERANCE:
            raise ValueError(f"intensity distribution must sum to 1, got {total:.3f}")
        return self


class TrainingBlock(_Strict):
    id: str
    name: str = Field(min_length=1)
    start_date: date
    end_date: date
    goal_ids: list[str] = Field(default_factory=list)
    phase: Phase
    intensity_distribution: IntensityDistribution
    target_weekly_tss_range: TssRange
    target_sessions_per_week_range: SessionRange | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _dates_ordered(self) -> "TrainingBlock":
        if self.end_date < self.start_date:
            raise ValueError("block end_date is before start_date")
        return self

    @property
    def midpoint_weekly_tss(self) -> float:
        return (self.target_weekly_tss_range.min + self.target_weekly_tss_range.max) / 2


class FitnessProgression(_Strict):
    starting_ctl: float = Field(ge=0)
    target_ctl_at_peak: float = Field(ge=0)
    weekly_ramp_rate: float = Field(ge=0)


def _check_distribution(value: dict[str, float]) -> dict[str, float]:
    total = sum(value.values())
    if value and abs(total - 1.0) > SUM_TOLERANCE:
        raise ValueError(f"activity distribution must sum to 1, got {total:.3f}")
    return value


class PeriodizedPlan(_Strict):
    plan_type: Literal["periodized"] = "periodized"
    id: str
    name: str = Field(min_length=1)
    description: str | None = None
    start_date: date
    end_date: date
    goals: list[TrainingGoal] = Field(min_length=1)
    fitness_progression: FitnessProgression
    activity_distribution: dict[str, float] = Field(default_factory=dict)
    blocks: list[TrainingBlock] = Field(min_length=1)

    @field_validator("activity_distribution")
    @classmethod
    def _distribution_sums_to_one(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_distribution(value)

    @model_validator(mode="after")
    def _structure(self) -> "PeriodizedPlan":
        if self.end_date < self.start_date:
            raise ValueError("plan end_date is before start_date")

        goal_ids = {g.id for g in self.goals}
        ordered = sorted(self.blocks, key=lambda b: b.start_date)
        for block in ordered:
            if block.start_date < self.start_date or block.end_date > self.end_date:
                raise ValueError(f"block '{block.name}' lies outside plan dates")
            missing = [gid for gid in block.goal_ids if gid not in goal_ids]
            if missing:
                raise ValueError(f"block '{block.name}' references unknown goals: {missing}")
        for prev, current in zip(ordered, ordered[1:], strict=False):
            if current.start_date <= prev.end_date:
                raise ValueError(f"blocks '{prev.name}' and '{current.name}' overlap")
        self.blocks = ordered
        return self


class MaintenancePlan(_Strict):
    plan_type: Literal["maintenance"] = "maintenance"
    id: str
    name: str = Field(min_length=1)
    description: str | None = None
    start_date: date
    end_date: date | None = None
    target_weekly_tss_range: TssRange
    target_ctl_range: TssRange | None = None
    activity_distribution: dict[str, float] = Field(default_factory=dict)

    @field_validator("activity_distribution")
    @classmethod
    def _distribution_sums_to_one(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_distribution(value)


PlanStructure = Annotated[PeriodizedPlan | MaintenancePlan, Field(discriminator="plan_type")]

plan_structure_adapter: TypeAdapter[PeriodizedPlan | MaintenancePlan] = TypeAdapter(PlanStructure)
