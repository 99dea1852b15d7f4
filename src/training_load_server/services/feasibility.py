"""Goal feasibility, plan safety and adherence timelines."""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

import structlog

from training_load_server.core.config import FeasibilityConfig, settings
from training_load_server.core.errors import BadRequestError
from training_load_server.schemas.plan import TrainingBlock, TrainingGoal
from training_load_server.services.planner import PlanFeasibilityCheck, find_block_for_date

logger = structlog.get_logger()

MIN_WEEKS_FOR_RAMP = 0.1


class FeasibilityState(str, Enum):
    FEASIBLE = "feasible"
    AGGRESSIVE = "aggressive"
    UNSAFE = "unsafe"


class SafetyState(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    EXCEEDED = "exceeded"


FEASIBILITY_ORDER = list(FeasibilityState)
SAFETY_ORDER = list(SafetyState)


@dataclass
class GoalAssessment:
    goal_id: str
    goal_name: str
    target_date: date
    days_until_goal: int
    required_weekly_ramp: float | None
    feasibility_state: FeasibilityState
    safety_state: SafetyState
    feasibility_reasons: list[str] = field(default_factory=list)
    safety_reasons: list[str] = field(default_factory=list)


@dataclass
class PlanAssessment:
    feasibility_state: FeasibilityState
    safety_state: SafetyState
    feasibility_reasons: list[str] = field(default_factory=list)
    safety_reasons: list[str] = field(default_factory=list)
    plan_warnings: list[str] = field(default_factory=list)


@dataclass
class TimelinePoint:
    date: date
    ideal_tss: float
    scheduled_tss: float
    actual_tss: float
    adherence_score: int
    boundary_state: SafetyState
    boundary_reasons: list[str] = field(default_factory=list)


@dataclass
class TimelineSummary:
    boundary_state: SafetyState
    plan_safety_state: SafetyState
    average_adherence: float
    projection_confidence: float
    projection_drivers: list[str]
    capability_confidence: float


def worst_feasibility(*states: FeasibilityState) -> FeasibilityState:
    return max(states, key=FEASIBILITY_ORDER.index)


def worst_safety(*states: SafetyState) -> SafetyState:
    return max(states, key=SAFETY_ORDER.index)


def dedupe(reasons: Iterable[str]) -> list[str]:
    """Drop repeated reason codes, keeping first-seen order."""
    return list(dict.fromkeys(reasons))


def round_half_up(value: float) -> int:
    """Nearest integer, rounding halves up."""
    return math.floor(value + 0.5)


def ratio_score(actual: float, target: float) -> int:
    """Score how close actual is to target on a 0-100 scale.

    Undershoot loses points linearly. Overshoot up to 20% loses one point
    per percent; beyond that the penalty is steeper.
    """
    if target <= 0:
        return 100 if actual <= 0 else 0
    ratio = actual / target
    if ratio <= 1:
        score = round_half_up(ratio * 100)
    elif ratio <= 1.2:
        score = round_half_up(100 - (ratio - 1) * 100)
    else:
        score = round_half_up(80 - (ratio - 1.2) * 50)
    return max(0, min(100, score))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class FeasibilityAssessor:
    """Classifies goals and plans, and scores day-by-day adherence."""

    def __init__(self, config: FeasibilityConfig | None = None) -> None:
        self.config = config or settings.feasibility
        self.logger = logger.bind(service="feasibility")

    def assess_goal(
        self,
        goal: TrainingGoal,
        reference_date: date,
        current_ctl: float,
        target_ctl: float | None = None,
    ) -> GoalAssessment:
        """Feasibility and safety of one goal.

        Args:
            goal: Normalized goal
            reference_date: Assessment day
            current_ctl: Current chronic training load
            target_ctl: CTL the goal requires; ramp rules are skipped without it
        """
        cfg = self.config
        days = (goal.target_date - reference_date).days

        feasibility = FeasibilityState.FEASIBLE
        feasibility_reasons: list[str] = []
        if days < 0:
            feasibility = FeasibilityState.UNSAFE
            feasibility_reasons.append("goal_date_in_past")
        elif days < cfg.unsafe_days:
            feasibility = FeasibilityState.UNSAFE
            feasibility_reasons.append("goal_timeline_too_short")
        elif days < cfg.aggressive_days:
            feasibility = FeasibilityState.AGGRESSIVE
            feasibility_reasons.append("limited_preparation_window")

        safety = SafetyState.SAFE
        safety_reasons: list[str] = []
        if days < cfg.exceeded_days:
            safety = SafetyState.EXCEEDED
            safety_reasons.append("goal_date_within_two_weeks")
        elif days < cfg.caution_days:
            safety = SafetyState.CAUTION
            safety_reasons.append("goal_date_within_five_weeks")

        ramp: float | None = None
        if target_ctl is not None:
            weeks = max(days / 7, MIN_WEEKS_FOR_RAMP)
            ramp = (target_ctl - current_ctl) / weeks

            if ramp > cfg.unsafe_ramp:
                feasibility = FeasibilityState.UNSAFE
                feasibility_reasons.append("required_ctl_ramp_too_high")
            elif ramp > cfg.aggressive_ramp and feasibility != FeasibilityState.UNSAFE:
                feasibility = FeasibilityState.AGGRESSIVE
                feasibility_reasons.append("required_ctl_ramp_near_limit")

            if ramp > cfg.exceeded_ramp:
                safety = SafetyState.EXCEEDED
                safety_reasons.append("required_ramp_exceeds_safe_boundary")
            elif ramp > cfg.caution_ramp and safety != SafetyState.EXCEEDED:
                safety = SafetyState.CAUTION
                safety_reasons.append("required_ramp_near_safe_boundary")

        if (
            goal.priority >= cfg.high_priority
            and days < cfg.high_priority_days
            and feasibility == FeasibilityState.FEASIBLE
        ):
            feasibility = FeasibilityState.AGGRESSIVE
            feasibility_reasons.append("high_priority_goal_short_timeline")

        return GoalAssessment(
            goal_id=goal.id,
            goal_name=goal.name,
            target_date=goal.target_date,
            days_until_goal=days,
            required_weekly_ramp=round(ramp, 2) if ramp is not None else None,
            feasibility_state=feasibility,
            safety_state=safety,
            feasibility_reasons=dedupe(feasibility_reasons),
            safety_reasons=dedupe(safety_reasons),
        )

    def assess_plan(
        self,
        goal_assessments: Sequence[GoalAssessment],
        plan_check: PlanFeasibilityCheck | None = None,
    ) -> PlanAssessment:
        """Roll goal assessments and plan checks up to the worst state."""
        feasibility = FeasibilityState.FEASIBLE
        safety = SafetyState.SAFE
        feasibility_reasons: list[str] = []
        safety_reasons: list[str] = []

        for assessment in goal_assessments:
            feasibility = worst_feasibility(feasibility, assessment.feasibility_state)
            safety = worst_safety(safety, assessment.safety_state)
            feasibility_reasons.extend(assessment.feasibility_reasons)
            safety_reasons.extend(assessment.safety_reasons)

        plan_warnings: list[str] = []
        if plan_check is not None:
            plan_warnings = list(plan_check.warnings)
            if plan_check.warnings:
                feasibility = worst_feasibility(feasibility, FeasibilityState.AGGRESSIVE)
                feasibility_reasons.extend(plan_check.warnings)
            if plan_check.block_ramp_warnings:
                safety = worst_safety(safety, SafetyState.CAUTION)
                safety_reasons.extend(w.reason for w in plan_check.block_ramp_warnings)

        return PlanAssessment(
            feasibility_state=feasibility,
            safety_state=safety,
            feasibility_reasons=dedupe(feasibility_reasons),
            safety_reasons=dedupe(safety_reasons),
            plan_warnings=plan_warnings,
        )

    def adherence_score(self, actual: float, scheduled: float, ideal: float) -> int:
        """Weighted adherence: actual vs scheduled, then scheduled vs ideal."""
        return round_half_up(
            self.config.actual_weight * ratio_score(actual, scheduled)
            + self.config.scheduled_weight * ratio_score(scheduled, ideal)
        )

    def classify_boundary_state(
        self, ideal: float, scheduled: float, actual: float
    ) -> tuple[SafetyState, list[str]]:
        """Safety of a day's load against its baseline.

        Scheduled load is compared with ideal load and actual load with
        scheduled load. A zero baseline is not compared.
        """
        exceeded = self.config.boundary_exceeded_ratio
        caution = self.config.boundary_caution_ratio
        state = SafetyState.SAFE
        reasons: list[str] = []

        if ideal > 0:
            if scheduled > ideal * exceeded:
                state = worst_safety(state, SafetyState.EXCEEDED)
                reasons.append("scheduled_load_above_ideal_boundary")
            elif scheduled > ideal * caution:
                state = worst_safety(state, SafetyState.CAUTION)
                reasons.append("scheduled_load_near_ideal_boundary")

        if scheduled > 0:
            if actual > scheduled * exceeded:
                state = worst_safety(state, SafetyState.EXCEEDED)
                reasons.append("actual_load_above_scheduled_boundary")
            elif actual > scheduled * caution:
                state = worst_safety(state, SafetyState.CAUTION)
                reasons.append("actual_load_near_scheduled_boundary")

        return state, reasons

    @staticmethod
    def ideal_daily_tss(
        day: date,
        blocks: Sequence[TrainingBlock],
        default_weekly_tss: float | None = None,
    ) -> float:
        """Block midpoint weekly TSS spread over seven days.

        Days outside every block use default_weekly_tss (maintenance plans)
        or zero.
        """
        block = find_block_for_date(blocks, day)
        if block is not None:
            return round(block.midpoint_weekly_tss / 7, 1)
        if default_weekly_tss:
            return round(default_weekly_tss / 7, 1)
        return 0.0

    def validate_window(self, start: date, end: date) -> int:
        """Check a timeline window and return its length in days.

        Raises:
            BadRequestError: If end is before start or the window exceeds
                the maximum length
        """
        if end < start:
            raise BadRequestError(
                "Timeline end date is before start date",
                {"start": start.isoformat(), "end": end.isoformat()},
            )
        window_days = (end - start).days + 1
        if window_days > self.config.max_window_days:
            raise BadRequestError(
                f"Timeline window cannot exceed {self.config.max_window_days} days",
                {"window_days": window_days},
            )
        return window_days

    def build_timeline(
        self,
        start: date,
        end: date,
        blocks: Sequence[TrainingBlock],
        scheduled_by_date: Mapping[date, float],
        actual_by_date: Mapping[date, float],
        default_weekly_tss: float | None = None,
    ) -> list[TimelinePoint]:
        """Day-by-day ideal, scheduled and actual load with adherence.

        Raises:
            BadRequestError: If the window is invalid (see validate_window)
        """
        self.validate_window(start, end)

        points: list[TimelinePoint] = []
        day = start
        while day <= end:
            ideal = self.ideal_daily_tss(day, blocks, default_weekly_tss)
            scheduled = round(scheduled_by_date.get(day, 0.0), 1)
            actual = round(actual_by_date.get(day, 0.0), 1)
            state, reasons = self.classify_boundary_state(ideal, scheduled, actual)
            points.append(
                TimelinePoint(
                    date=day,
                    ideal_tss=ideal,
                    scheduled_tss=scheduled,
                    actual_tss=actual,
                    adherence_score=self.adherence_score(actual, scheduled, ideal),
                    boundary_state=state,
                    boundary_reasons=reasons,
                )
            )
            day += timedelta(days=1)

        self.logger.debug("Built adherence timeline", days=len(points))
        return points

    def summarize_timeline(
        self,
        points: Sequence[TimelinePoint],
        plan_safety: SafetyState,
        activity_count: int,
    ) -> TimelineSummary:
        boundary = worst_safety(SafetyState.SAFE, *(p.boundary_state for p in points))
        average = (
            round(sum(p.adherence_score for p in points) / len(points), 1) if points else 0.0
        )
        if average <= 0:
            projection_confidence = 0.2
        else:
            projection_confidence = round(_clamp(average / 100, 0.2, 0.8), 2)

        drivers = ["mvp_baseline_projection"]
        if average < self.config.low_adherence_threshold:
            drivers.append("low_adherence_reduces_projection_confidence")
        else:
            drivers.append("adherence_within_expected_range")

        full_count = self.config.capability_full_activity_count
        return TimelineSummary(
            boundary_state=boundary,
            plan_safety_state=worst_safety(plan_safety, boundary),
            average_adherence=average,
            projection_confidence=projection_confidence,
            projection_drivers=drivers,
            capability_confidence=round(_clamp(activity_count / full_count, 0.1, 0.9), 2),
        )
