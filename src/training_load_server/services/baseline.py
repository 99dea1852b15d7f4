"""Athlete baseline service.

Baselines form an append-only log. A lookup returns the most recent
entry recorded at or before the reference time; future-dated entries
are never visible to earlier lookups.
"""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.models.activity import Activity, ActivityCategory
from training_load_server.models.baseline import (
    AthleteBaseline,
    BaselineCategory,
    BaselineMetric,
    BaselineSource,
)
from training_load_server.schemas.athlete import AthleteProfile, EstimationResult, OnboardingInput
from training_load_server.services.estimator import (
    MetricEstimator,
    estimate_critical_velocity,
    estimate_ftp_from_best_effort,
    estimate_ftp_from_weight,
    estimate_lthr,
    estimate_threshold_pace_from_run,
    estimate_vo2max,
)

logger = structlog.get_logger()

METRIC_UNITS = {
    BaselineMetric.FTP: "W",
    BaselineMetric.LTHR: "bpm",
    BaselineMetric.MAX_HR: "bpm",
    BaselineMetric.RESTING_HR: "bpm",
    BaselineMetric.VO2MAX: "ml/kg/min",
    BaselineMetric.THRESHOLD_PACE: "s/km",
    BaselineMetric.CSS: "s/100m",
    BaselineMetric.WEIGHT_KG: "kg",
}

# Sport a baseline is recorded against when onboarding
METRIC_CATEGORIES = {
    BaselineMetric.FTP: BaselineCategory.BIKE,
    BaselineMetric.THRESHOLD_PACE: BaselineCategory.RUN,
    BaselineMetric.CSS: BaselineCategory.SWIM,
}

SPORT_CATEGORIES = {c.value for c in BaselineCategory} - {BaselineCategory.GENERAL.value}

FTP_EFFORT_SECONDS = 1200


class BaselineService:
    """Reads and writes the athlete baseline log."""

    def __init__(self, session: AsyncSession, estimator: MetricEstimator | None = None) -> None:
        """Initialize baseline service.

        Args:
            session: Database session
            estimator: Estimator used to fill gaps (default config when omitted)
        """
        self.session = session
        self.estimator = estimator or MetricEstimator()
        self.logger = logger.bind(service="baseline")

    async def log_baseline(
        self,
        user_id: str,
        metric: BaselineMetric,
        value: float,
        category: BaselineCategory = BaselineCategory.GENERAL,
        unit: str | None = None,
        source: BaselineSource = BaselineSource.MEASURED,
        recorded_at: datetime | None = None,
        commit: bool = True,
    ) -> AthleteBaseline:
        """Append a baseline entry. Earlier entries stay untouched."""
        entry = AthleteBaseline(
            user_id=user_id,
            metric_type=metric.value,
            category=category.value,
            value=value,
            unit=unit or METRIC_UNITS.get(metric),
            source=source.value,
            recorded_at=recorded_at or datetime.now(UTC),
        )
        self.session.add(entry)
        if commit:
            await self.session.commit()
            await self.session.refresh(entry)

        self.logger.info(
            "Baseline logged",
            user_id=user_id,
            metric=metric.value,
            category=category.value,
            value=value,
            source=source.value,
        )
        return entry

    async def get_baseline_as_of(
        self,
        user_id: str,
        metric: BaselineMetric,
        category: BaselineCategory | str = BaselineCategory.GENERAL,
        as_of: datetime | None = None,
    ) -> AthleteBaseline | None:
        """Most recent entry at or before as_of.

        A sport-specific lookup falls back to the general category.
        """
        as_of = as_of or datetime.now(UTC)
        category = BaselineCategory(category) if isinstance(category, str) else category

        categories = [category]
        if category != BaselineCategory.GENERAL:
            categories.append(BaselineCategory.GENERAL)

        for candidate in categories:
            stmt = (
                select(AthleteBaseline)
                .where(
                    AthleteBaseline.user_id == user_id,
                    AthleteBaseline.metric_type == metric.value,
                    AthleteBaseline.category == candidate.value,
                    AthleteBaseline.recorded_at <= as_of,
                )
                .order_by(AthleteBaseline.recorded_at.desc(), AthleteBaseline.created_at.desc())
                .limit(1)
            )
            result = await self.session.execute(stmt)
            entry = result.scalar_one_or_none()
            if entry is not None:
                return entry
        return None

    async def list_baselines(
        self, user_id: str, metric: BaselineMetric | None = None
    ) -> list[AthleteBaseline]:
        """Full history, newest first."""
        stmt = select(AthleteBaseline).where(AthleteBaseline.user_id == user_id)
        if metric is not None:
            stmt = stmt.where(AthleteBaseline.metric_type == metric.value)
        stmt = stmt.order_by(AthleteBaseline.recorded_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def current_values(
        self, user_id: str, category: str, as_of: datetime | None = None
    ) -> dict[str, float]:
        """Latest value of every baseline metric for a sport."""
        lookup = category if category in SPORT_CATEGORIES else BaselineCategory.GENERAL.value
        values: dict[str, float] = {}
        for metric in BaselineMetric:
            entry = await self.get_baseline_as_of(user_id, metric, lookup, as_of)
            if entry is not None:
                values[metric.value] = entry.value
        return values

    async def resolve_profile(
        self, user_id: str, category: str, as_of: datetime | None = None
    ) -> AthleteProfile:
        """Athlete profile for a sport as of a point in time.

        Logged values win. Gaps are estimated from recent activities, then
        from related values, and otherwise filled with cold-start defaults.
        """
        as_of = as_of or datetime.now(UTC)
        measured = await self.current_values(user_id, category, as_of)

        estimates: dict[str, EstimationResult] = {}
        if "ftp" not in measured or "threshold_pace" not in measured:
            history = await self.history_estimates(user_id, as_of)
            estimates.update({k: v for k, v in history.items() if k not in measured})
        if "lthr" not in measured and "max_hr" in measured:
            estimates["lthr"] = estimate_lthr(measured["max_hr"])
        if "ftp" not in measured and "ftp" not in estimates and "weight_kg" in measured:
            estimates["ftp"] = estimate_ftp_from_weight(measured["weight_kg"])
        if (
            "vo2max" not in measured
            and "max_hr" in measured
            and "resting_hr" in measured
            and measured["resting_hr"] < measured["max_hr"]
        ):
            estimates["vo2max"] = estimate_vo2max(measured["max_hr"], measured["resting_hr"])

        return self.estimator.build_profile(measured, estimates)

    async def history_estimates(
        self, user_id: str, as_of: datetime
    ) -> dict[str, EstimationResult]:
        """FTP and threshold pace estimated from activities before as_of.

        FTP comes from the best stored 20 minute power of a ride. Threshold
        pace comes from the fastest run close to 5 km, or from critical
        velocity over 20-60 minute runs when there is none.
        """
        window_start = as_of - timedelta(days=self.estimator.defaults.history_days)
        stmt = select(Activity).where(
            Activity.user_id == user_id,
            Activity.activity_category.in_(
                [ActivityCategory.BIKE.value, ActivityCategory.RUN.value]
            ),
            Activity.started_at >= window_start,
            Activity.started_at < as_of,
        )
        result = await self.session.execute(stmt)
        activities = list(result.scalars().all())

        estimates: dict[str, EstimationResult] = {}

        best_power = max(
            (
                float(effort["value"])
                for activity in activities
                if activity.activity_category == ActivityCategory.BIKE.value
                for effort in (activity.metrics or {}).get("best_efforts") or []
                if effort.get("effort_type") == "power"
                and effort.get("duration_seconds") == FTP_EFFORT_SECONDS
                and effort.get("value")
            ),
            default=None,
        )
        if best_power is not None:
            estimates["ftp"] = estimate_ftp_from_best_effort(best_power)

        runs = [
            (activity.distance_meters, activity.duration_seconds)
            for activity in activities
            if activity.activity_category == ActivityCategory.RUN.value
            and activity.distance_meters
            and activity.duration_seconds > 0
        ]
        paces = [
            estimate
            for estimate in (estimate_threshold_pace_from_run(d, t) for d, t in runs)
            if estimate is not None
        ]
        if paces:
            estimates["threshold_pace"] = min(paces, key=lambda e: e.value)
        else:
            velocity = estimate_critical_velocity(runs)
            if velocity is not None:
                estimates["threshold_pace"] = EstimationResult(
                    value=float(round(1000.0 / velocity.value)),
                    confidence=velocity.confidence,
                    notes=f"Critical velocity {velocity.value} m/s",
                )

        if estimates:
            self.logger.debug(
                "Baselines estimated from activity history",
                user_id=user_id,
                estimates={k: v.value for k, v in estimates.items()},
            )
        return estimates

    async def onboard(self, user_id: str, onboarding: OnboardingInput) -> list[AthleteBaseline]:
        """Record measured and estimated baselines from onboarding answers."""
        estimates = self.estimator.estimate_from_onboarding(onboarding)
        recorded_at = datetime.now(UTC)

        entries = []
        for name, estimate in estimates.items():
            metric = BaselineMetric(name)
            entries.append(
                await self.log_baseline(
                    user_id,
                    metric,
                    estimate.value,
                    category=METRIC_CATEGORIES.get(metric, BaselineCategory.GENERAL),
                    source=BaselineSource(estimate.source),
                    recorded_at=recorded_at,
                    commit=False,
                )
            )
        await self.session.commit()

        self.logger.info("Athlete onboarded", user_id=user_id, baselines=list(estimates))
        return entries
