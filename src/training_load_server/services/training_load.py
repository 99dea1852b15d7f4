"""Fitness/fatigue tracking (CTL/ATL/TSB).

Chronic and acute training load are exponentially weighted moving averages
of daily TSS: ``new = previous + (tss - previous) / time_constant``. The
recursion is replayed over every calendar day in order, zero days
included, from a deterministic seed.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

import structlog

from training_load_server.core.config import TrainingLoadConfig, settings

logger = structlog.get_logger()

CTL_TIME_CONSTANT = 42.0
ATL_TIME_CONSTANT = 7.0

LOAD_LEVELS = ("low", "moderate", "high", "very_high")


class FormStatus(str, Enum):
    """Ordinal form scale derived from TSB."""

    FRESH = "fresh"
    OPTIMAL = "optimal"
    NEUTRAL = "neutral"
    TIRED = "tired"
    OVERREACHING = "overreaching"


FORM_RECOMMENDATIONS = {
    FormStatus.FRESH: "Well rested. A good time for a key session or race.",
    FormStatus.OPTIMAL: "Good balance of fitness and freshness. Ready for quality training.",
    FormStatus.NEUTRAL: "Normal training state. Continue with planned sessions.",
    FormStatus.TIRED: "Accumulated fatigue. Consider an easier day or a recovery session.",
    FormStatus.OVERREACHING: "High fatigue. Prioritize recovery to avoid overtraining.",
}


@dataclass
class TrainingLoadState:
    """CTL/ATL/TSB at the end of a day."""

    ctl: float
    atl: float

    @property
    def tsb(self) -> float:
        return calculate_tsb(self.ctl, self.atl)

    @property
    def form(self) -> FormStatus:
        return get_form_status(self.tsb)


@dataclass
class LoadPoint:
    """One day of the fitness/fatigue series, rounded for output."""

    date: date
    tss: float
    ctl: float
    atl: float
    tsb: float
    form: str


@dataclass
class LoadAnalysis:
    """Human-oriented reading of a load state."""

    ctl: float
    atl: float
    tsb: float
    fitness_level: str
    fatigue_level: str
    form: str
    recommendation: str


def calculate_ctl(
    previous_ctl: float, tss: float, time_constant: float = CTL_TIME_CONSTANT
) -> float:
    """Chronic training load after one day."""
    return previous_ctl + (tss - previous_ctl) / time_constant


def calculate_atl(
    previous_atl: float, tss: float, time_constant: float = ATL_TIME_CONSTANT
) -> float:
    """Acute training load after one day."""
    return previous_atl + (tss - previous_atl) / time_constant


def calculate_tsb(ctl: float, atl: float) -> float:
    """Training stress balance (form)."""
    return ctl - atl


def get_form_status(tsb: float, config: TrainingLoadConfig | None = None) -> FormStatus:
    """Classify TSB on the form scale.

    Used by every caller that reports form so the cut points stay
    consistent across the series, status and analysis outputs.
    """
    config = config or settings.training_load
    if tsb > config.form_fresh_above:
        return FormStatus.FRESH
    if tsb > config.form_optimal_above:
        return FormStatus.OPTIMAL
    if tsb >= config.form_neutral_from:
        return FormStatus.NEUTRAL
    if tsb >= config.form_tired_from:
        return FormStatus.TIRED
    return FormStatus.OVERREACHING


def load_level(value: float, config: TrainingLoadConfig | None = None) -> str:
    """Bucket a CTL or ATL value."""
    config = config or settings.training_load
    for level, upper in zip(LOAD_LEVELS, config.load_level_bounds, strict=False):
        if value < upper:
            return level
    return LOAD_LEVELS[-1]


def estimate_tss(
    duration_minutes: float, effort: str, config: TrainingLoadConfig | None = None
) -> float:
    """Planning TSS estimate from duration and perceived effort.

    Args:
        duration_minutes: Planned session length
        effort: easy, moderate or hard (unknown values count as moderate)
        config: Load constants (global settings when omitted)

    Returns:
        Estimated TSS rounded to a whole number
    """
    config = config or settings.training_load
    intensity = config.effort_intensity.get(effort, config.effort_intensity["moderate"])
    hours = max(duration_minutes, 0.0) / 60.0
    return float(round(hours * intensity * intensity * 100))


def build_daily_tss(
    entries: Iterable[tuple[date, float | None]], start: date, end: date
) -> dict[date, float]:
    """Dense calendar-day TSS map from (day, tss) pairs.

    Every day in [start, end] is present; days without activities are 0.
    Entries without a TSS or outside the window are ignored.
    """
    daily: dict[date, float] = {}
    day = start
    while day <= end:
        daily[day] = 0.0
        day += timedelta(days=1)

    for day, tss in entries:
        if tss is None or day not in daily:
            continue
        daily[day] += tss
    return daily


def _round(value: float) -> float:
    return round(value, 1)


class TrainingLoadTracker:
    """Replays the CTL/ATL recursion over daily TSS."""

    def __init__(self, config: TrainingLoadConfig | None = None) -> None:
        self.config = config or settings.training_load

    def default_state(self) -> TrainingLoadState:
        seed = self.config.default_seed
        return TrainingLoadState(ctl=seed, atl=seed)

    def step(self, state: TrainingLoadState, tss: float) -> TrainingLoadState:
        """Advance the state by one calendar day."""
        return TrainingLoadState(
            ctl=calculate_ctl(state.ctl, tss, self.config.ctl_time_constant),
            atl=calculate_atl(state.atl, tss, self.config.atl_time_constant),
        )

    def estimate_seed(self, trailing_daily_tss: Mapping[date, float]) -> TrainingLoadState:
        """Seed state from trailing history.

        Replays the last ``seed_window_days`` calendar days (zero days
        included) starting from the default seed. Without any load in the
        window the default seed is returned unchanged.
        """
        if not trailing_daily_tss:
            return self.default_state()

        days = sorted(trailing_daily_tss)
        window_start = days[-1] - timedelta(days=self.config.seed_window_days - 1)
        window = [d for d in days if d >= window_start]
        if not any(trailing_daily_tss[d] > 0 for d in window):
            return self.default_state()

        state = self.default_state()
        day = window_start
        while day <= days[-1]:
            state = self.step(state, trailing_daily_tss.get(day, 0.0))
            day += timedelta(days=1)
        logger.debug("Estimated load seed", ctl=round(state.ctl, 1), atl=round(state.atl, 1))
        return state

    def calculate_series(
        self,
        daily_tss: Mapping[date, float],
        seed: TrainingLoadState | None = None,
    ) -> list[LoadPoint]:
        """Day-by-day CTL/ATL/TSB.

        Missing calendar days between the first and last date are treated
        as zero-TSS days.

        Args:
            daily_tss: TSS per day
            seed: State before the first day (default seed when omitted)

        Returns:
            One LoadPoint per calendar day, rounded to 1 decimal
        """
        if not daily_tss:
            return []

        state = seed or self.default_state()
        days = sorted(daily_tss)
        points: list[LoadPoint] = []
        day = days[0]
        while day <= days[-1]:
            tss = daily_tss.get(day, 0.0)
            state = self.step(state, tss)
            points.append(
                LoadPoint(
                    date=day,
                    tss=_round(tss),
                    ctl=_round(state.ctl),
                    atl=_round(state.atl),
                    tsb=_round(state.tsb),
                    form=get_form_status(state.tsb, self.config).value,
                )
            )
            day += timedelta(days=1)
        return points

    def final_state(
        self,
        daily_tss: Mapping[date, float],
        seed: TrainingLoadState | None = None,
    ) -> TrainingLoadState:
        """Unrounded state after replaying daily_tss."""
        state = seed or self.default_state()
        if not daily_tss:
            return state
        days = sorted(daily_tss)
        day = days[0]
        while day <= days[-1]:
            state = self.step(state, daily_tss.get(day, 0.0))
            day += timedelta(days=1)
        return state

    def project(
        self, state: TrainingLoadState, planned_daily_tss: Sequence[float]
    ) -> list[TrainingLoadState]:
        """Replay the recursion forward over hypothetical daily TSS."""
        projected: list[TrainingLoadState] = []
        for tss in planned_daily_tss:
            state = self.step(state, tss)
            projected.append(state)
        return projected

    @staticmethod
    def calculate_ramp_rate(current_ctl: float, ctl_week_ago: float) -> float:
        """Weekly CTL change."""
        return _round(current_ctl - ctl_week_ago)

    def is_ramp_rate_safe(self, ramp_rate: float, threshold: float | None = None) -> bool:
        limit = self.config.safe_ramp_rate if threshold is None else threshold
        return ramp_rate <= limit

    def recommended_daily_tss(
        self, current_ctl: float, target_ctl: float, weekly_ramp: float | None = None
    ) -> float:
        """Daily TSS that lifts CTL by the daily share of the weekly ramp.

        Once the target is reached the recommendation is maintenance load.
        """
        if current_ctl >= target_ctl:
            return float(round(current_ctl))
        ramp = self.config.recommended_weekly_ramp if weekly_ramp is None else weekly_ramp
        daily_increase = ramp / 7.0
        return float(round(current_ctl + daily_increase * self.config.ctl_time_constant))

    def target_daily_tss(self, current_ctl: float, target_ctl: float, days: int) -> float:
        """Daily TSS needed to close a CTL gap over a number of days."""
        if days <= 0:
            return current_ctl
        gap = target_ctl - current_ctl
        return current_ctl + gap / days * self.config.ctl_time_constant

    def analyze(self, state: TrainingLoadState) -> LoadAnalysis:
        form = get_form_status(state.tsb, self.config)
        return LoadAnalysis(
            ctl=_round(state.ctl),
            atl=_round(state.atl),
            tsb=_round(state.tsb),
            fitness_level=load_level(state.ctl, self.config),
            fatigue_level=load_level(state.atl, self.config),
            form=form.value,
            recommendation=FORM_RECOMMENDATIONS[form],
        )
