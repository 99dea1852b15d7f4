"""Physiological baseline estimation.

Fills in missing athlete baselines from partial data (age, weight,
a representative run) and seeds best-effort curves for new athletes.
"""

from collections.abc import Mapping

import structlog

from training_load_server.core.config import BaselineDefaults, settings
from training_load_server.core.errors import InvalidInputError
from training_load_server.schemas.athlete import (
    AthleteProfile,
    EffortCurve,
    EffortCurvePoint,
    EstimationResult,
    OnboardingInput,
)

logger = structlog.get_logger()

FTP_WATTS_PER_KG = 2.5
FTP_FROM_20MIN = 0.95
LTHR_FRACTION_OF_MAX = 0.85
VO2MAX_UTH_FACTOR = 15.3
VO2MAX_MIN = 20.0
VO2MAX_MAX = 100.0

THRESHOLD_PACE_BY_LEVEL = {
    "beginner": 360.0,
    "intermediate": 300.0,
    "advanced": 240.0,
}
FIVE_K_METERS = 5000.0
FIVE_K_TOLERANCE_METERS = 500.0
THRESHOLD_PACE_FROM_5K = 1.05

CRITICAL_VELOCITY_MIN_SECONDS = 20 * 60
CRITICAL_VELOCITY_MAX_SECONDS = 60 * 60

POWER_CURVE_DURATIONS = [5, 10, 30, 60, 180, 300, 600, 1200, 1800, 3600]
POWER_CURVE_ANAEROBIC_WORK = 20000.0
SPEED_CURVE_DURATIONS = [5, 10, 30, 60, 180, 300, 600, 1200, 1800, 3600]
SWIM_CURVE_DURATIONS = [10, 20, 30, 60, 120, 180, 300, 600, 900, 1800]

PROFILE_FIELDS = (
    "ftp",
    "lthr",
    "max_hr",
    "resting_hr",
    "vo2max",
    "weight_kg",
    "threshold_pace",
    "css",
)


def estimate_ftp_from_weight(weight_kg: float) -> EstimationResult:
    if weight_kg <= 0:
        raise InvalidInputError("weight_kg must be positive")
    return EstimationResult(
        value=float(round(weight_kg * FTP_WATTS_PER_KG)),
        confidence="low",
        notes=f"{FTP_WATTS_PER_KG} W/kg population average",
    )


def estimate_ftp_from_best_effort(best_20min_power: float) -> EstimationResult:
    if best_20min_power <= 0:
        raise InvalidInputError("best_20min_power must be positive")
    return EstimationResult(
        value=float(round(best_20min_power * FTP_FROM_20MIN)),
        confidence="medium",
        notes="95% of best 20 minute power",
    )


def estimate_max_hr(age: int) -> EstimationResult:
    if age <= 0 or age >= 220:
        raise InvalidInputError("age must be between 1 and 219")
    return EstimationResult(value=float(220 - age), confidence="low", notes="220 - age")


def estimate_lthr(max_hr: float) -> EstimationResult:
    if max_hr <= 0:
        raise InvalidInputError("max_hr must be positive")
    return EstimationResult(
        value=float(round(max_hr * LTHR_FRACTION_OF_MAX)),
        confidence="low",
        notes="85% of max heart rate",
    )


def estimate_vo2max(max_hr: float, resting_hr: float) -> EstimationResult:
    """Uth-Sorensen estimate: 15.3 x HRmax / HRrest, clamped to 20-100."""
    if resting_hr <= 0 or max_hr <= 0:
        raise InvalidInputError("heart rates must be positive")
    if resting_hr >= max_hr:
        raise InvalidInputError("resting_hr must be below max_hr")
    raw = VO2MAX_UTH_FACTOR * max_hr / resting_hr
    value = round(min(max(raw, VO2MAX_MIN), VO2MAX_MAX), 1)
    return EstimationResult(value=value, confidence="low", notes="Uth formula")


def estimate_threshold_pace(level: str) -> EstimationResult:
    if level not in THRESHOLD_PACE_BY_LEVEL:
        raise InvalidInputError(f"unknown running level: {level}")
    return EstimationResult(
        value=THRESHOLD_PACE_BY_LEVEL[level],
        confidence="low",
        notes=f"{level} runner default",
    )


def estimate_threshold_pace_from_run(
    distance_m: float, duration_s: float
) -> EstimationResult | None:
    """Threshold pace (s/km) from a run close to 5 km.

    Returns None when the run is not within 500 m of 5 km.
    """
    if duration_s <= 0 or distance_m <= 0:
        raise InvalidInputError("distance and duration must be positive")
    if abs(distance_m - FIVE_K_METERS) > FIVE_K_TOLERANCE_METERS:
        return None
    pace = duration_s / (distance_m / 1000.0)
    return EstimationResult(
        value=float(round(pace * THRESHOLD_PACE_FROM_5K)),
        confidence="medium",
        notes="5k pace + 5%",
    )


def estimate_critical_velocity(runs: list[tuple[float, float]]) -> EstimationResult | None:
    """Best sustained speed (m/s) among runs of 20-60 minutes.

    Args:
        runs: (distance_m, duration_s) pairs
    """
    speeds = [
        distance / duration
        for distance, duration in runs
        if CRITICAL_VELOCITY_MIN_SECONDS <= duration <= CRITICAL_VELOCITY_MAX_SECONDS
        and distance > 0
    ]
    if not speeds:
        return None
    return EstimationResult(
        value=round(max(speeds), 3),
        confidence="medium",
        notes="Best 20-60 minute run",
    )


def _speed_multiplier(duration: int) -> float:
    if duration < 60:
        return 1.15
    if duration < 300:
        return 1.08
    if duration < 1200:
        return 1.0
    return 0.92


def _swim_multiplier(duration: int) -> float:
    if duration < 60:
        return 1.1
    if duration < 180:
        return 1.06
    if duration < 600:
        return 1.0
    return 0.93


class MetricEstimator:
    """Resolves athlete profiles and derived curves."""

    def __init__(self, defaults: BaselineDefaults | None = None) -> None:
        self.defaults = defaults or settings.baseline_defaults
        self.logger = logger.bind(service="estimator")

    def estimate_from_onboarding(self, onboarding: OnboardingInput) -> dict[str, EstimationResult]:
        """Estimates for every baseline derivable from onboarding answers."""
        results: dict[str, EstimationResult] = {}

        if onboarding.ftp:
            results["ftp"] = EstimationResult(value=onboarding.ftp, source="measured")
        elif onboarding.weight_kg:
            results["ftp"] = estimate_ftp_from_weight(onboarding.weight_kg)

        if onboarding.max_hr:
            results["max_hr"] = EstimationResult(value=onboarding.max_hr, source="measured")
        elif onboarding.age:
            results["max_hr"] = estimate_max_hr(onboarding.age)

        if "max_hr" in results:
            results["lthr"] = estimate_lthr(results["max_hr"].value)

        if onboarding.resting_hr:
            results["resting_hr"] = EstimationResult(
                value=onboarding.resting_hr, source="measured"
            )
            if "max_hr" in results:
                results["vo2max"] = estimate_vo2max(
                    results["max_hr"].value, onboarding.resting_hr
                )

        if onboarding.weight_kg:
            results["weight_kg"] = EstimationResult(value=onboarding.weight_kg, source="measured")

        if onboarding.threshold_pace:
            results["threshold_pace"] = EstimationResult(
                value=onboarding.threshold_pace, source="measured"
            )
        elif onboarding.running_level:
            results["threshold_pace"] = estimate_threshold_pace(onboarding.running_level)

        if onboarding.css:
            results["css"] = EstimationResult(value=onboarding.css, source="measured")

        return results

    def build_profile(
        self,
        measured: Mapping[str, float | None] | None = None,
        estimates: Mapping[str, EstimationResult] | None = None,
    ) -> AthleteProfile:
        """Resolve a full profile: measured values, then estimates, then defaults.

        Substituting a default never fails; the substituted names are listed
        in ``defaults_used`` so callers can lower their confidence.
        """
        measured = measured or {}
        estimates = estimates or {}
        values: dict[str, float] = {}
        defaults_used: list[str] = []

        for name in PROFILE_FIELDS:
            value = measured.get(name)
            if value is None and name in estimates:
                value = estimates[name].value
            if value is None:
                value = getattr(self.defaults, name)
                defaults_used.append(name)
            values[name] = value

        if defaults_used:
            self.logger.warning("Using cold-start baseline defaults", defaults=defaults_used)

        return AthleteProfile(**values, defaults_used=defaults_used)

    def derive_effort_curve(self, profile: AthleteProfile, sport: str) -> EffortCurve:
        """Seed best-effort curve from threshold values.

        Args:
            profile: Resolved athlete profile
            sport: bike (power, W), run (speed, m/s) or swim (speed, m/s)
        """
        if sport == "bike":
            points = [
                EffortCurvePoint(d, float(round(profile.ftp + POWER_CURVE_ANAEROBIC_WORK / d)))
                for d in POWER_CURVE_DURATIONS
            ]
            return EffortCurve(sport=sport, metric="power", points=points)

        if sport == "run":
            threshold_speed = 1000.0 / profile.threshold_pace
            points = [
                EffortCurvePoint(d, round(threshold_speed * _speed_multiplier(d), 2))
                for d in SPEED_CURVE_DURATIONS
            ]
            return EffortCurve(sport=sport, metric="speed", points=points)

        if sport == "swim":
            css_speed = 100.0 / profile.css
            points = [
                EffortCurvePoint(d, round(css_speed * _swim_multiplier(d), 2))
                for d in SWIM_CURVE_DURATIONS
            ]
            return EffortCurve(sport=sport, metric="speed", points=points)

        raise InvalidInputError(f"no effort curve for sport: {sport}")
