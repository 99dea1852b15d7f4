"""Stream-derived activity metrics.

Computes TSS and its companions from raw power, heart rate and speed
streams. The TSS source follows a fixed priority: power, then heart rate,
then pace. Baselines that fell back to cold-start defaults lower the
reported confidence instead of failing the calculation.
"""

import math
from dataclasses import dataclass

import numpy as np
import structlog

from training_load_server.core.config import StreamConfig, ZoneConfig, settings
from training_load_server.core.errors import BadRequestError
from training_load_server.schemas.athlete import AthleteProfile
from training_load_server.schemas.metrics import (
    ActivityMetrics,
    BestEffort,
    Confidence,
    TssSource,
)
from training_load_server.schemas.streams import ActivityStreams
from training_load_server.services.zones import IntensityZoneClassifier

logger = structlog.get_logger()

EFFORT_SIGNALS = {
    "power": "power",
    "speed": "speed",
    "heart_rate": "heart_rate",
}
PACE_CATEGORIES = ("run", "swim")

# Bag keys owned by a stream computation; a recompute replaces all of them.
# Device-reported TSS and IF are kept unless the new run scores.
STREAM_DERIVED_KEYS = frozenset(
    {
        "tss_source",
        "confidence",
        "scored",
        "normalized_power",
        "normalized_speed",
        "normalized_pace",
        "average_power",
        "average_heart_rate",
        "max_heart_rate",
        "variability_index",
        "efficiency_factor",
        "aerobic_decoupling",
        "hr_zone_seconds",
        "power_zone_seconds",
        "best_efforts",
        "training_effect",
        "defaults_used",
        "baseline_snapshot",
    }
)


@dataclass
class _SourceResult:
    source: TssSource
    tss: float
    intensity_factor: float
    confidence: Confidence
    baselines: tuple[str, ...]


def _as_array(values: list[float | None]) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def sample_durations(timestamps: np.ndarray) -> np.ndarray:
    """Seconds each sample represents: time to the next sample, 1 s for the last."""
    if timestamps.size == 0:
        return timestamps
    dt = np.diff(timestamps, append=timestamps[-1] + 1.0)
    return np.clip(dt, 0.0, None)


def rolling_mean(values: np.ndarray, window: int) -> np.ndarray:
    """Trailing rolling mean; a short series collapses to its overall mean."""
    if values.size == 0:
        return values
    if values.size < window:
        return np.array([values.mean()])
    cumulative = np.cumsum(np.insert(values, 0, 0.0))
    return (cumulative[window:] - cumulative[:-window]) / window


def normalized_power(power: np.ndarray, window: int = 30) -> float | None:
    """Fourth-root of the mean fourth power of the rolling-average power."""
    power = power[~np.isnan(power)]
    if power.size == 0 or not np.any(power > 0):
        return None
    rolled = rolling_mean(power, window)
    return float(np.mean(rolled**4) ** 0.25)


def grade_adjusted_pace(
    speed: np.ndarray,
    altitude: np.ndarray,
    dt: np.ndarray,
    pace_distance: float = 1000.0,
    uphill_factor: float = 0.035,
    downhill_factor: float = 0.02,
) -> np.ndarray:
    """Per-sample pace (seconds per pace_distance) adjusted for grade.

    Uphill samples get a faster equivalent pace, downhill samples a
    slower one. Samples without forward speed are dropped.
    """
    moving = ~np.isnan(speed) & (speed > 0)
    if not np.any(moving):
        return np.array([])

    pace = np.full(speed.shape, np.nan)
    pace[moving] = pace_distance / speed[moving]

    elevation_change = np.diff(altitude, prepend=np.nan)
    distance = np.where(moving, np.nan_to_num(speed) * dt, 0.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        grade = np.where(distance > 0, elevation_change / distance * 100.0, 0.0)
    grade = np.nan_to_num(grade)

    factor = np.where(grade > 0, 1 + grade * uphill_factor, 1 + grade * downhill_factor)
    factor = np.clip(factor, 0.5, None)
    return (pace / factor)[moving]


def hr_training_stress(
    heart_rate: np.ndarray,
    dt: np.ndarray,
    lthr: float,
    bounds: list[float],
    points_per_hour: list[float],
) -> float:
    """Zone-point heart-rate TSS: points per hour in each %LTHR zone."""
    valid = ~np.isnan(heart_rate)
    if not np.any(valid) or lthr <= 0:
        return 0.0
    zones = np.digitize(heart_rate[valid] / lthr, bounds)
    rates = np.asarray(points_per_hour)[zones]
    return float(np.sum(rates / 3600.0 * dt[valid]))


def zone_seconds(values: np.ndarray, dt: np.ndarray, thresholds: list[float]) -> list[int]:
    """Seconds spent in each zone delimited by absolute thresholds."""
    totals = [0.0] * (len(thresholds) + 1)
    valid = ~np.isnan(values)
    if np.any(valid):
        zones = np.digitize(values[valid], thresholds)
        for zone, seconds in zip(zones, dt[valid], strict=False):
            totals[int(zone)] += float(seconds)
    return [int(round(t)) for t in totals]


def best_efforts(
    timestamps: np.ndarray,
    values: np.ndarray,
    effort_type: str,
    durations: list[int],
    min_samples: int = 10,
) -> list[BestEffort]:
    """Highest average value over sliding time windows.

    A window qualifies when it fits inside the recording and holds at
    least min(min_samples, duration) samples.
    """
    valid = ~np.isnan(values)
    ts = timestamps[valid]
    vals = values[valid]
    if ts.size == 0:
        return []

    end = ts[-1] + 1.0
    cumulative = np.cumsum(np.insert(vals, 0, 0.0))
    starts = np.arange(ts.size)
    efforts: list[BestEffort] = []

    for duration in durations:
        ends = np.searchsorted(ts, ts + duration, side="left")
        counts = ends - starts
        qualifies = (ts + duration <= end) & (counts >= min(min_samples, duration))
        if not np.any(qualifies):
            continue
        with np.errstate(divide="ignore", invalid="ignore"):
            means = (cumulative[ends] - cumulative[starts]) / counts
        means = np.where(qualifies, means, -np.inf)
        best = int(np.argmax(means))
        efforts.append(
            BestEffort(
                effort_type=effort_type,
                duration_seconds=duration,
                value=round(float(means[best]), 2),
                start_offset_seconds=float(ts[best] - timestamps[0]),
            )
        )
    return efforts


def aerobic_decoupling(
    timestamps: np.ndarray, output: np.ndarray, heart_rate: np.ndarray
) -> float | None:
    """Percent drift of output:HR from the first half to the second half."""
    valid = ~np.isnan(output) & ~np.isnan(heart_rate) & (heart_rate > 0)
    if np.count_nonzero(valid) < 2:
        return None
    midpoint = (timestamps[0] + timestamps[-1]) / 2
    first = valid & (timestamps < midpoint)
    second = valid & (timestamps >= midpoint)
    if not np.any(first) or not np.any(second):
        return None

    first_ratio = output[first].mean() / heart_rate[first].mean()
    second_ratio = output[second].mean() / heart_rate[second].mean()
    if first_ratio <= 0:
        return None
    return round(float((second_ratio - first_ratio) / first_ratio * 100.0), 2)


class StreamMetricsCalculator:
    """Derives ActivityMetrics from activity streams."""

    def __init__(
        self,
        stream_config: StreamConfig | None = None,
        zone_config: ZoneConfig | None = None,
    ) -> None:
        self.config = stream_config or settings.streams
        self.zone_config = zone_config or settings.zones
        self.classifier = IntensityZoneClassifier(self.zone_config)
        self.logger = logger.bind(service="stream_metrics")

    def calculate(
        self,
        streams: ActivityStreams,
        profile: AthleteProfile,
        category: str,
        duration_seconds: float | None = None,
    ) -> ActivityMetrics:
        """Compute metrics for one activity.

        Args:
            streams: Ordered stream samples
            profile: Resolved athlete baselines
            category: Activity category (run, bike, swim, ...)
            duration_seconds: Elapsed duration; stream span when omitted

        Returns:
            ActivityMetrics; TSS and IF are None when no signal can score
            the activity

        Raises:
            BadRequestError: If the duration is zero, negative or NaN
        """
        duration = duration_seconds if duration_seconds is not None else streams.span_seconds
        if duration is None or not math.isfinite(duration) or duration <= 0:
            raise BadRequestError(
                "Activity duration must be positive",
                {"duration_seconds": duration},
            )

        timestamps = np.asarray(streams.timestamps, dtype=float)
        dt = sample_durations(timestamps)
        power = _as_array(streams.series("power"))
        heart_rate = _as_array(streams.series("heart_rate"))
        speed = _as_array(streams.series("speed"))
        altitude = _as_array(streams.series("altitude"))

        window = self.config.rolling_window_samples
        np_value = normalized_power(power, window)
        avg_power = float(np.nanmean(power)) if np.any(~np.isnan(power)) else None
        hr_present = np.any(~np.isnan(heart_rate) & (heart_rate > 0))
        avg_hr = float(np.nanmean(heart_rate)) if hr_present else None
        max_hr = float(np.nanmax(heart_rate)) if hr_present else None

        normalized_pace = None
        normalized_speed = None
        pace_distance = 100.0 if category == "swim" else 1000.0
        if category in PACE_CATEGORIES and streams.has_signal("speed"):
            gap = grade_adjusted_pace(
                speed,
                altitude,
                dt,
                pace_distance=pace_distance,
                uphill_factor=self.config.uphill_grade_factor,
                downhill_factor=self.config.downhill_grade_factor,
            )
            if gap.size:
                normalized_pace = float(np.mean(rolling_mean(gap, window)))
                normalized_speed = pace_distance / normalized_pace

        hours = duration / 3600.0
        result = self._select_source(
            profile,
            category,
            hours,
            np_value,
            avg_hr,
            heart_rate,
            dt,
            normalized_pace,
        )

        metrics: dict[str, object] = {
            "normalized_power": _round(np_value, 1),
            "average_power": _round(avg_power, 1),
            "average_heart_rate": _round(avg_hr, 1),
            "max_heart_rate": _round(max_hr, 0),
            "normalized_pace": _round(normalized_pace, 1),
            "normalized_speed": _round(normalized_speed, 3),
        }

        if np_value and avg_power:
            metrics["variability_index"] = round(np_value / avg_power, 3)

        if avg_hr:
            if np_value:
                metrics["efficiency_factor"] = round(np_value / avg_hr, 3)
            elif normalized_speed and category == "run":
                metrics["efficiency_factor"] = round(normalized_speed * 60.0 / avg_hr, 3)
            output = power if np_value else speed
            metrics["aerobic_decoupling"] = aerobic_decoupling(timestamps, output, heart_rate)
            metrics["hr_zone_seconds"] = zone_seconds(
                heart_rate, dt, [profile.lthr * b for b in self.zone_config.hr_zone_bounds]
            )

        if np_value:
            metrics["power_zone_seconds"] = zone_seconds(
                power, dt, [profile.ftp * b for b in self.zone_config.power_zone_bounds]
            )

        efforts: list[BestEffort] = []
        for effort_type, signal in EFFORT_SIGNALS.items():
            if streams.has_signal(signal):
                efforts.extend(
                    best_efforts(
                        timestamps,
                        _as_array(streams.series(signal)),
                        effort_type,
                        self.config.best_effort_durations,
                        self.config.min_window_samples,
                    )
                )
        if efforts:
            metrics["best_efforts"] = efforts

        if result is None:
            metrics["scored"] = False
            self.logger.info("No signal available to score activity", category=category)
            return ActivityMetrics(**{k: v for k, v in metrics.items() if v is not None})

        confidence = result.confidence
        defaults_used = profile.uses_default(*result.baselines)
        if defaults_used:
            confidence = Confidence.LOW
            self.logger.warning(
                "Scoring with default baselines",
                source=result.source.value,
                defaults=defaults_used,
            )

        metrics.update(
            {
                "training_stress_score": round(result.tss, 1),
                "intensity_factor": round(result.intensity_factor, 3),
                "tss_source": result.source,
                "confidence": confidence,
                "scored": True,
                "training_effect": self.classifier.get_training_intensity_zone(
                    result.intensity_factor
                ).value,
                "defaults_used": defaults_used,
                "baseline_snapshot": {
                    name: getattr(profile, name) for name in result.baselines
                },
            }
        )
        return ActivityMetrics(**{k: v for k, v in metrics.items() if v is not None})

    def _select_source(
        self,
        profile: AthleteProfile,
        category: str,
        hours: float,
        np_value: float | None,
        avg_hr: float | None,
        heart_rate: np.ndarray,
        dt: np.ndarray,
        normalized_pace: float | None,
    ) -> _SourceResult | None:
        if np_value and profile.ftp > 0:
            intensity = np_value / profile.ftp
            return _SourceResult(
                source=TssSource.POWER,
                tss=100.0 * hours * intensity**2,
                intensity_factor=intensity,
                confidence=Confidence.HIGH,
                baselines=("ftp",),
            )

        if avg_hr and profile.lthr > 0:
            return _SourceResult(
                source=TssSource.HEART_RATE,
                tss=hr_training_stress(
                    heart_rate,
                    dt,
                    profile.lthr,
                    self.zone_config.hr_tss_bounds,
                    self.zone_config.hr_tss_points_per_hour,
                ),
                intensity_factor=avg_hr / profile.lthr,
                confidence=Confidence.MEDIUM,
                baselines=("lthr",),
            )

        if normalized_pace and normalized_pace > 0:
            baseline = "css" if category == "swim" else "threshold_pace"
            intensity = getattr(profile, baseline) / normalized_pace
            return _SourceResult(
                source=TssSource.PACE,
                tss=100.0 * hours * intensity**2,
                intensity_factor=intensity,
                confidence=Confidence.MEDIUM,
                baselines=(baseline,),
            )

        return None


def _round(value: float | None, digits: int) -> float | None:
    return round(value, digits) if value is not None else None
