"""Activity ingestion and metrics service."""

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.core.errors import (
    BadRequestError,
    InvalidInputError,
    NotFoundError,
    ValidationIssue,
)
from training_load_server.models.activity import Activity
from training_load_server.schemas.metrics import ActivityMetrics
from training_load_server.schemas.requests import ActivityCreate
from training_load_server.schemas.streams import ActivityStreams
from training_load_server.services.baseline import BaselineService
from training_load_server.services.stream_metrics import (
    STREAM_DERIVED_KEYS,
    StreamMetricsCalculator,
)
from training_load_server.services.training_load import build_daily_tss
from training_load_server.services.zones import ScoredActivity
from training_load_server.transformers.streams import StreamRecordTransformer

logger = structlog.get_logger()


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def activity_day(activity: Activity) -> date:
    """Calendar day (UTC) an activity counts towards."""
    return to_utc(activity.started_at).date()


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """[start 00:00, day after end 00:00) in UTC."""
    return (
        datetime.combine(start, time.min, tzinfo=UTC),
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=UTC),
    )


def parse_metrics(data: Mapping[str, Any]) -> ActivityMetrics:
    """Validate a raw metrics bag."""
    try:
        return ActivityMetrics.model_validate(dict(data))
    except ValidationError as exc:
        issues = [
            ValidationIssue(".".join(str(p) for p in err["loc"]), err["msg"])
            for err in exc.errors()
        ]
        raise InvalidInputError("Invalid activity metrics", issues) from exc


class ActivityService:
    """Stores activities and keeps their metrics bag current."""

    def __init__(
        self,
        session: AsyncSession,
        calculator: StreamMetricsCalculator | None = None,
    ) -> None:
        """Initialize activity service.

        Args:
            session: Database session
            calculator: Stream metrics calculator (default config when omitted)
        """
        self.session = session
        self.calculator = calculator or StreamMetricsCalculator()
        self.logger = logger.bind(service="activity")

    async def ingest(self, user_id: str, data: ActivityCreate) -> Activity:
        """Store a completed activity.

        Raises:
            BadRequestError: If the duration is zero, negative or NaN
            InvalidInputError: If the supplied metrics bag is malformed
        """
        duration = data.duration_seconds
        if not math.isfinite(duration) or duration <= 0:
            raise BadRequestError(
                "Activity duration must be positive",
                {"duration_seconds": duration},
            )

        metrics = parse_metrics(data.metrics).to_bag() if data.metrics else {}
        started_at = to_utc(data.started_at)
        activity = Activity(
            user_id=user_id,
            name=data.name,
            activity_category=data.activity_category.value,
            started_at=started_at,
            finished_at=started_at + timedelta(seconds=duration),
            duration_seconds=duration,
            distance_meters=data.distance_meters,
            metrics=metrics,
        )
        self.session.add(activity)
        await self.session.commit()
        await self.session.refresh(activity)

        self.logger.info(
            "Activity ingested",
            user_id=user_id,
            activity_id=activity.id,
            category=activity.activity_category,
        )
        return activity

    async def get_activity(self, user_id: str, activity_id: str) -> Activity:
        """Fetch an activity owned by the athlete.

        Raises:
            NotFoundError: If it does not exist or belongs to someone else
        """
        stmt = select(Activity).where(Activity.id == activity_id, Activity.user_id == user_id)
        result = await self.session.execute(stmt)
        activity = result.scalar_one_or_none()
        if activity is None:
            raise NotFoundError("Activity not found", {"activity_id": activity_id})
        return activity

    async def list_activities(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Activity]:
        """Activities in [start, end] (inclusive days), oldest first."""
        stmt = select(Activity).where(Activity.user_id == user_id)
        if start is not None:
            stmt = stmt.where(Activity.started_at >= day_bounds(start, start)[0])
        if end is not None:
            stmt = stmt.where(Activity.started_at < day_bounds(end, end)[1])
        stmt = stmt.order_by(Activity.started_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def merge_metrics(
        self,
        activity: Activity,
        metrics: ActivityMetrics,
        replace: Iterable[str] = (),
    ) -> Activity:
        """Merge new metrics into the bag.

        Keys listed in ``replace`` are dropped first; any other key not in
        the update is kept.
        """
        dropped = set(replace)
        bag = {k: v for k, v in (activity.metrics or {}).items() if k not in dropped}
        bag.update(metrics.to_bag())
        activity.metrics = bag
        await self.session.commit()
        await self.session.refresh(activity)
        return activity

    async def update_metrics(
        self, user_id: str, activity_id: str, data: Mapping[str, Any]
    ) -> Activity:
        activity = await self.get_activity(user_id, activity_id)
        return await self.merge_metrics(activity, parse_metrics(data))

    async def compute_stream_metrics(
        self,
        user_id: str,
        activity_id: str,
        streams: ActivityStreams,
    ) -> Activity:
        """Derive metrics from streams and merge them into the activity.

        Baselines are resolved as of the activity start, falling back to
        cold-start defaults.
        """
        activity = await self.get_activity(user_id, activity_id)
        profile = await BaselineService(self.session).resolve_profile(
            user_id,
            activity.activity_category,
            as_of=to_utc(activity.started_at),
        )
        metrics = self.calculator.calculate(
            streams,
            profile,
            activity.activity_category,
            activity.duration_seconds,
        )
        self.logger.info(
            "Computed stream metrics",
            user_id=user_id,
            activity_id=activity_id,
            source=metrics.tss_source.value if metrics.tss_source else None,
            confidence=metrics.confidence.value if metrics.confidence else None,
        )
        return await self.merge_metrics(activity, metrics, replace=STREAM_DERIVED_KEYS)

    async def compute_from_records(
        self,
        user_id: str,
        activity_id: str,
        records: Iterable[Mapping[str, Any]],
    ) -> Activity:
        """Same as compute_stream_metrics, starting from parser records."""
        streams = StreamRecordTransformer.transform(records)
        return await self.compute_stream_metrics(user_id, activity_id, streams)

    async def daily_tss(self, user_id: str, start: date, end: date) -> dict[date, float]:
        """Dense per-day TSS totals; unscored activities contribute 0."""
        activities = await self.list_activities(user_id, start, end)
        return build_daily_tss(
            ((activity_day(a), a.training_stress_score) for a in activities),
            start,
            end,
        )

    async def scored_activities(
        self, user_id: str, start: date, end: date
    ) -> list[ScoredActivity]:
        """Activities reduced to what zone analysis needs."""
        activities = await self.list_activities(user_id, start, end)
        return [
            ScoredActivity(
                started_on=activity_day(a),
                tss=a.training_stress_score,
                intensity_factor=a.intensity_factor,
            )
            for a in activities
        ]
