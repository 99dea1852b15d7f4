"""Intensity zone classification and TSS-weighted zone distributions."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

import structlog
from scipy import stats

from training_load_server.core.config import ZoneConfig, settings

logger = structlog.get_logger()

# Minimum weeks for an intensity trend regression
MIN_WEEKS_TREND = 3
TREND_P_THRESHOLD = 0.05


class IntensityZone(str, Enum):
    """Seven-zone intensity scale keyed by intensity factor."""

    RECOVERY = "recovery"
    ENDURANCE = "endurance"
    TEMPO = "tempo"
    THRESHOLD = "threshold"
    VO2MAX = "vo2max"
    ANAEROBIC = "anaerobic"
    NEUROMUSCULAR = "neuromuscular"


ZONE_ORDER = list(IntensityZone)
EASY_ZONES = (IntensityZone.RECOVERY, IntensityZone.ENDURANCE)
HARD_ZONES = (
    IntensityZone.THRESHOLD,
    IntensityZone.VO2MAX,
    IntensityZone.ANAEROBIC,
    IntensityZone.NEUROMUSCULAR,
)


@dataclass
class ScoredActivity:
    """Minimal activity view needed for zone analysis."""

    started_on: date
    tss: float | None
    intensity_factor: float | None

    @property
    def is_scored(self) -> bool:
        return bool(self.tss and self.tss > 0 and self.intensity_factor and self.intensity_factor > 0)


@dataclass
class ZoneDistribution:
    """TSS share per intensity zone, in percent."""

    zones: dict[str, float]
    total_tss: float
    activity_count: int
    recommendations: list[str] = field(default_factory=list)


@dataclass
class WeeklyIntensity:
    week_start: date
    total_tss: float
    activity_count: int
    average_intensity_factor: float | None
    zones: dict[str, float]


@dataclass
class IntensityTrend:
    """Weekly intensity summaries plus a regression over average IF."""

    weeks: list[WeeklyIntensity]
    direction: str = "insufficient"
    slope: float | None = None
    r_value: float | None = None
    p_value: float | None = None


class IntensityZoneClassifier:
    """Maps intensity factors to zones and aggregates load by zone."""

    def __init__(self, config: ZoneConfig | None = None) -> None:
        self.config = config or settings.zones

    def get_training_intensity_zone(self, intensity_factor: float) -> IntensityZone:
        """Zone for an intensity factor. Monotonic non-decreasing in IF."""
        for bound, zone in zip(self.config.intensity_bounds, ZONE_ORDER, strict=False):
            if intensity_factor < bound:
                return zone
        return IntensityZone.NEUROMUSCULAR

    def distribution(self, activities: Iterable[ScoredActivity]) -> ZoneDistribution:
        """TSS-weighted zone percentages.

        Activities without a positive TSS and intensity factor are
        skipped. Percentages sum to 100 (within rounding) when any load
        was scored, and are all zero otherwise.
        """
        activities = list(activities)
        totals = {zone.value: 0.0 for zone in ZONE_ORDER}
        scored = [a for a in activities if a.is_scored]

        for activity in scored:
            zone = self.get_training_intensity_zone(activity.intensity_factor or 0.0)
            totals[zone.value] += activity.tss or 0.0

        total_tss = sum(totals.values())
        if total_tss > 0:
            zones = {name: round(value / total_tss * 100, 1) for name, value in totals.items()}
        else:
            zones = {name: 0.0 for name in totals}

        return ZoneDistribution(
            zones=zones,
            total_tss=round(total_tss, 1),
            activity_count=len(scored),
            recommendations=self.recommendations(zones, len(scored)),
        )

    def recommendations(self, zones: dict[str, float], activity_count: int) -> list[str]:
        """Polarization advice for a distribution."""
        if activity_count == 0:
            return ["No scored activities in this period."]
        if activity_count < self.config.min_activities_for_advice:
            return ["Not enough activities yet for intensity recommendations."]

        easy = sum(zones[z.value] for z in EASY_ZONES)
        hard = sum(zones[z.value] for z in HARD_ZONES)
        tempo = zones[IntensityZone.TEMPO.value]

        advice: list[str] = []
        if easy < 70:
            advice.append(
                f"Only {easy:.0f}% of load is easy. Aim for roughly 80% in recovery and "
                "endurance zones to build aerobic base."
            )
        elif easy > 90:
            advice.append(
                f"{easy:.0f}% of load is easy. Adding one or two harder sessions per week "
                "can drive further adaptation."
            )
        if hard > 30:
            advice.append(
                f"{hard:.0f}% of load is at threshold or above. Make sure recovery keeps pace."
            )
        if tempo > 20:
            advice.append(
                f"{tempo:.0f}% of load is tempo. Too much gray-zone work can limit both "
                "recovery and high-end gains."
            )
        if not advice:
            advice.append("Intensity distribution looks well balanced.")
        return advice

    def weekly_trends(self, activities: Iterable[ScoredActivity]) -> IntensityTrend:
        """Per-week (Monday start) intensity summaries with a trend fit."""
        by_week: dict[date, list[ScoredActivity]] = {}
        for activity in activities:
            week_start = activity.started_on - timedelta(days=activity.started_on.weekday())
            by_week.setdefault(week_start, []).append(activity)

        weeks: list[WeeklyIntensity] = []
        for week_start in sorted(by_week):
            week = by_week[week_start]
            scored = [a for a in week if a.is_scored]
            dist = self.distribution(week)
            avg_if = (
                round(sum(a.intensity_factor or 0.0 for a in scored) / len(scored), 3)
                if scored
                else None
            )
            weeks.append(
                WeeklyIntensity(
                    week_start=week_start,
                    total_tss=dist.total_tss,
                    activity_count=len(week),
                    average_intensity_factor=avg_if,
                    zones=dist.zones,
                )
            )

        trend = IntensityTrend(weeks=weeks)
        points = [(i, w.average_intensity_factor) for i, w in enumerate(weeks)]
        points = [(x, y) for x, y in points if y is not None]
        if len(points) < MIN_WEEKS_TREND:
            return trend

        xs = [x for x, _ in points]
        ys = [y for _, y in points]
        if len(set(ys)) == 1:
            trend.direction = "stable"
            trend.slope = 0.0
            return trend

        regression = stats.linregress(xs, ys)
        trend.slope = float(regression.slope)
        trend.r_value = float(regression.rvalue)
        trend.p_value = float(regression.pvalue)
        if regression.pvalue < TREND_P_THRESHOLD:
            trend.direction = "increasing" if regression.slope > 0 else "decreasing"
        else:
            trend.direction = "stable"

        logger.debug("Intensity trend", weeks=len(weeks), direction=trend.direction)
        return trend
