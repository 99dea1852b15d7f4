"""Request bodies accepted by the HTTP API."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from training_load_server.models.activity import ActivityCategory
from training_load_server.models.baseline import BaselineCategory, BaselineMetric, BaselineSource
from training_load_server.models.planned_activity import EffortLevel
from training_load_server.schemas.plan import MinimalGoal
from training_load_server.schemas.streams import StreamSample


class ActivityCreate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    activity_category: ActivityCategory = ActivityCategory.OTHER
    started_at: datetime
    duration_seconds: float
    distance_meters: float | None = Field(default=None, ge=0)
    metrics: dict[str, Any] | None = None


class StreamUpload(BaseModel):
    """Parsed stream records for an existing activity."""

    samples: list[StreamSample] = Field(min_length=1)


class BaselineCreate(BaseModel):
    metric_type: BaselineMetric
    category: BaselineCategory = BaselineCategory.GENERAL
    value: float = Field(gt=0)
    unit: str | None = None
    source: BaselineSource = BaselineSource.MEASURED
    recorded_at: datetime | None = None


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    structure: dict[str, Any]


class MinimalGoalPlanRequest(BaseModel):
    goals: list[MinimalGoal] = Field(min_length=1)
    name: str | None = Field(default=None, max_length=255)
    reference_date: date | None = None


class PlannedActivityCreate(BaseModel):
    scheduled_date: date
    name: str = Field(min_length=1, max_length=255)
    activity_category: ActivityCategory = ActivityCategory.OTHER
    estimated_duration_seconds: float | None = Field(default=None, gt=0)
    effort_level: EffortLevel = EffortLevel.MODERATE
    estimated_tss: float | None = Field(default=None, ge=0)
