"""Pydantic schemas for streams, metrics, athletes and plans."""

from training_load_server.schemas.athlete import (
    AthleteProfile,
    EffortCurve,
    EffortCurvePoint,
    EstimationResult,
    OnboardingInput,
)
from training_load_server.schemas.metrics import ActivityMetrics, BestEffort, Confidence, TssSource
from training_load_server.schemas.plan import (
    MaintenancePlan,
    MinimalGoal,
    PeriodizedPlan,
    Phase,
    TrainingBlock,
    TrainingGoal,
)
from training_load_server.schemas.streams import ActivityStreams, StreamSample

__all__ = [
    "ActivityMetrics",
    "ActivityStreams",
    "AthleteProfile",
    "BestEffort",
    "Confidence",
    "EffortCurve",
    "EffortCurvePoint",
    "EstimationResult",
    "MaintenancePlan",
    "MinimalGoal",
    "OnboardingInput",
    "PeriodizedPlan",
    "Phase",
    "StreamSample",
    "TrainingBlock",
    "TrainingGoal",
    "TssSource",
]
