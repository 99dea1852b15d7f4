"""Application services."""

from training_load_server.services.activity import ActivityService
from training_load_server.services.baseline import BaselineService
from training_load_server.services.estimator import MetricEstimator
from training_load_server.services.feasibility import FeasibilityAssessor
from training_load_server.services.insights import InsightsService
from training_load_server.services.planner import PeriodizationPlanner
from training_load_server.services.stream_metrics import StreamMetricsCalculator
from training_load_server.services.training_load import TrainingLoadTracker
from training_load_server.services.training_plan import TrainingPlanService
from training_load_server.services.zones import IntensityZoneClassifier

__all__ = [
    "ActivityService",
    "BaselineService",
    "FeasibilityAssessor",
    "InsightsService",
    "IntensityZoneClassifier",
    "MetricEstimator",
    "PeriodizationPlanner",
    "StreamMetricsCalculator",
    "TrainingLoadTracker",
    "TrainingPlanService",
]
