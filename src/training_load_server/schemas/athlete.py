"""Athlete profile and onboarding schemas."""

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field


@dataclass
class EstimationResult:
    """An estimated physiological value and how it was obtained."""

    value: float
    source: str = "estimated"
    confidence: str = "low"
    notes: str | None = None


class OnboardingInput(BaseModel):
    """Self-reported data collected when an athlete signs up."""

    age: int | None = Field(default=None, ge=10, le=100)
    weight_kg: float | None = Field(default=None, gt=20, lt=250)
    resting_hr: float | None = Field(default=None, ge=25, le=120)
    max_hr: float | None = Field(default=None, ge=100, le=230)
    ftp: float | None = Field(default=None, gt=0, le=700)
    running_level: Literal["beginner", "intermediate", "advanced"] | None = None
    threshold_pace: float | None = Field(default=None, gt=0, description="s/km")
    css: float | None = Field(default=None, gt=0, description="s/100m")


class AthleteProfile(BaseModel):
    """Resolved baselines used by the metrics calculator.

    Every value is populated; `defaults_used` names the ones that fell
    back to cold-start defaults.
    """

    ftp: float
    lthr: float
    max_hr: float
    resting_hr: float
    vo2max: float
    weight_kg: float
    threshold_pace: float
    css: float
    defaults_used: list[str] = Field(default_factory=list)

    def uses_default(self, *names: str) -> list[str]:
        """Subset of names that came from defaults."""
        return [n for n in names if n in self.defaults_used]


@dataclass
class EffortCurvePoint:
    """A point on a derived best-effort curve."""

    duration_seconds: int
    value: float


@dataclass
class EffortCurve:
    """Seed best-effort curve for a new athlete."""

    sport: str
    metric: str
    points: list[EffortCurvePoint] = field(default_factory=list)
