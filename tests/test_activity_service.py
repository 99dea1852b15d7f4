"""Tests for activity ingestion and metrics merging."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.core.errors import BadRequestError, InvalidInputError, NotFoundError
from training_load_server.models.baseline import BaselineCategory, BaselineMetric
from training_load_server.schemas.metrics import ActivityMetrics
from training_load_server.schemas.requests import ActivityCreate
from training_load_server.schemas.streams import ActivityStreams, StreamSample
from training_load_server.services.activity import ActivityService, to_utc
from training_load_server.services.baseline import BaselineService

OTHER_USER_ID = "athlete-002"
STARTED = datetime(2026, 6, 1, 7, 0, tzinfo=UTC)


def ride(**overrides) -> ActivityCreate:
    data = {
        "name": "Morning ride",
        "activity_category": "bike",
        "started_at": STARTED,
        "duration_seconds": 3600,
    }
    data.update(overrides)
    return ActivityCreate(**data)


class TestActivityService:
    """Tests for ActivityService."""

    @pytest.mark.asyncio
    async def test_ingest(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)

        activity = await service.ingest(
            user_id, ride(metrics={"training_stress_score": 72, "intensity_factor": 0.81})
        )

        assert activity.id
        assert activity.training_stress_score == 72.0
        assert activity.intensity_factor == 0.81
        assert to_utc(activity.finished_at) == STARTED + timedelta(hours=1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, -30, float("nan")])
    async def test_ingest_rejects_bad_duration(
        self, async_session: AsyncSession, user_id: str, duration: float
    ):
        with pytest.raises(BadRequestError):
            await ActivityService(async_session).ingest(user_id, ride(duration_seconds=duration))

    @pytest.mark.asyncio
    async def test_ingest_rejects_bad_metrics(self, async_session: AsyncSession, user_id: str):
        with pytest.raises(InvalidInputError) as exc_info:
            await ActivityService(async_session).ingest(
                user_id, ride(metrics={"hr_zone_seconds": [1, 2, 3]})
            )
        assert exc_info.value.issues[0].path == "hr_zone_seconds"

    @pytest.mark.asyncio
    async def test_activities_are_user_scoped(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)
        activity = await service.ingest(user_id, ride())

        with pytest.raises(NotFoundError):
            await service.get_activity(OTHER_USER_ID, activity.id)
        assert await service.list_activities(OTHER_USER_ID) == []

    @pytest.mark.asyncio
    async def test_list_window_is_inclusive(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)
        for days in range(5):
            await service.ingest(user_id, ride(started_at=STARTED + timedelta(days=days)))

        day = STARTED.date()
        activities = await service.list_activities(
            user_id, day + timedelta(days=1), day + timedelta(days=3)
        )

        assert len(activities) == 3

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_keys(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)
        activity = await service.ingest(
            user_id, ride(metrics={"training_stress_score": 60, "average_power": 180})
        )

        updated = await service.merge_metrics(
            activity, ActivityMetrics(training_stress_score=65, normalized_power=195)
        )

        assert updated.metrics["training_stress_score"] == 65
        assert updated.metrics["average_power"] == 180
        assert updated.metrics["normalized_power"] == 195

    @pytest.mark.asyncio
    async def test_compute_stream_metrics_uses_baseline_as_of_start(
        self, async_session: AsyncSession, user_id: str
    ):
        baselines = BaselineService(async_session)
        await baselines.log_baseline(
            user_id,
            BaselineMetric.FTP,
            250,
            BaselineCategory.BIKE,
            recorded_at=STARTED - timedelta(days=30),
        )
        # Recorded after the ride; must not be used
        await baselines.log_baseline(
            user_id,
            BaselineMetric.FTP,
            400,
            BaselineCategory.BIKE,
            recorded_at=STARTED + timedelta(days=1),
        )
        service = ActivityService(async_session)
        activity = await service.ingest(user_id, ride(duration_seconds=600))
        streams = ActivityStreams(
            samples=[StreamSample(timestamp=float(t), power=200.0) for t in range(600)]
        )

        updated = await service.compute_stream_metrics(user_id, activity.id, streams)

        assert updated.metrics["tss_source"] == "power"
        assert updated.metrics["baseline_snapshot"] == {"ftp": 250.0}
        assert updated.metrics["intensity_factor"] == pytest.approx(0.8)
        assert updated.metrics["confidence"] == "high"


    @pytest.mark.asyncio
    async def test_recompute_clears_stale_derived_keys(
        self, async_session: AsyncSession, user_id: str
    ):
        service = ActivityService(async_session)
        activity = await service.ingest(user_id, ride(duration_seconds=600))
        power_streams = ActivityStreams(
            samples=[StreamSample(timestamp=float(t), power=220.0) for t in range(600)]
        )

        first = await service.compute_stream_metrics(user_id, activity.id, power_streams)
        assert first.metrics["confidence"] == "low"
        assert first.metrics["defaults_used"] == ["ftp"]

        await BaselineService(async_session).log_baseline(
            user_id,
            BaselineMetric.FTP,
            250,
            BaselineCategory.BIKE,
            recorded_at=STARTED - timedelta(days=7),
        )
        second = await service.compute_stream_metrics(user_id, activity.id, power_streams)

        assert second.metrics["confidence"] == "high"
        assert second.metrics["defaults_used"] == []
        assert second.metrics["baseline_snapshot"] == {"ftp": 250.0}

        hr_streams = ActivityStreams(
            samples=[StreamSample(timestamp=float(t), heart_rate=140.0) for t in range(600)]
        )
        third = await service.compute_stream_metrics(user_id, activity.id, hr_streams)

        assert third.metrics["tss_source"] == "heart_rate"
        assert "normalized_power" not in third.metrics
        assert "power_zone_seconds" not in third.metrics

    @pytest.mark.asyncio
    async def test_recompute_keeps_unrelated_keys(
        self, async_session: AsyncSession, user_id: str
    ):
        service = ActivityService(async_session)
        activity = await service.ingest(
            user_id, ride(duration_seconds=600, metrics={"rpe": 6})
        )
        streams = ActivityStreams(
            samples=[StreamSample(timestamp=float(t), power=200.0) for t in range(600)]
        )

        updated = await service.compute_stream_metrics(user_id, activity.id, streams)

        assert updated.metrics["rpe"] == 6
    @pytest.mark.asyncio
    async def test_compute_from_records(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)
        activity = await service.ingest(user_id, ride(duration_seconds=300))
        records = [{"timestamp": 1_000 + t, "heart_rate": 150} for t in range(300)]

        updated = await service.compute_from_records(user_id, activity.id, records)

        assert updated.metrics["tss_source"] == "heart_rate"
        assert updated.metrics["confidence"] == "low"
        assert "lthr" in updated.metrics["defaults_used"]

    @pytest.mark.asyncio
    async def test_daily_tss_is_dense(self, async_session: AsyncSession, user_id: str):
        service = ActivityService(async_session)
        await service.ingest(user_id, ride(metrics={"training_stress_score": 40}))
        await service.ingest(
            user_id,
            ride(started_at=STARTED + timedelta(hours=10), metrics={"training_stress_score": 25}),
        )
        await service.ingest(user_id, ride(started_at=STARTED + timedelta(days=2)))

        day = STARTED.date()
        daily = await service.daily_tss(user_id, day, day + timedelta(days=3))

        assert daily[day] == 65.0
        assert daily[day + timedelta(days=1)] == 0.0
        assert daily[day + timedelta(days=2)] == 0.0
        assert len(daily) == 4
