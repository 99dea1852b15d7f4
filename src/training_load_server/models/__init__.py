"""Database models."""

from training_load_server.models.activity import Activity, ActivityCategory
from training_load_server.models.base import Base
from training_load_server.models.baseline import (
    AthleteBaseline,
    BaselineCategory,
    BaselineMetric,
    BaselineSource,
)
from training_load_server.models.planned_activity import EffortLevel, PlannedActivity
from training_load_server.models.training_plan import TrainingPlan

__all__ = [
    "Base",
    "Activity",
    "ActivityCategory",
    "AthleteBaseline",
    "BaselineCategory",
    "BaselineMetric",
    "BaselineSource",
    "EffortLevel",
    "PlannedActivity",
    "TrainingPlan",
]
