"""Periodized plan synthesis and structural checks.

Plans are derived deterministically from minimal goals: the same goals
and reference date always yield the same plan id, block ids and block
structure, so a preview can be committed later without drift.
"""

import json
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

import structlog
from pydantic import ValidationError

from training_load_server.core.config import PlannerConfig, settings
from training_load_server.core.errors import InvalidInputError, ValidationIssue, ValidationResult
from training_load_server.schemas.plan import (
    FitnessProgression,
    IntensityDistribution,
    MaintenancePlan,
    MinimalGoal,
    PeriodizedPlan,
    Phase,
    SessionRange,
    TrainingBlock,
    TrainingGoal,
    TssRange,
    plan_structure_adapter,
)
from training_load_server.services.training_load import TrainingLoadState, TrainingLoadTracker

logger = structlog.get_logger()

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

CATEGORY_ORDER = ["run", "bike", "swim", "strength", "other"]
DEFAULT_CATEGORIES = ["run"]

POLARIZED = {"easy": 0.8, "moderate": 0.1, "hard": 0.1}
PYRAMIDAL = {"easy": 0.7, "moderate": 0.2, "hard": 0.1}
THRESHOLD = {"easy": 0.6, "moderate": 0.3, "hard": 0.1}


@dataclass(frozen=True)
class PhaseProfile:
    intensity: dict[str, float]
    sessions: tuple[int, int]
    description: str


PHASE_CHARACTERISTICS = {
    Phase.BASE: PhaseProfile(POLARIZED, (4, 6), "Aerobic base building with mostly easy volume"),
    Phase.BUILD: PhaseProfile(PYRAMIDAL, (5, 7), "Increasing load with sustained tempo work"),
    Phase.PEAK: PhaseProfile(THRESHOLD, (5, 7), "Race-specific intensity at peak load"),
    Phase.TAPER: PhaseProfile(POLARIZED, (3, 5), "Reduced volume to shed fatigue before the goal"),
    Phase.RECOVERY: PhaseProfile(POLARIZED, (3, 4), "Unloading and recovery"),
    Phase.TRANSITION: PhaseProfile(POLARIZED, (2, 4), "Unstructured transition training"),
}

LOADING_PHASES = (Phase.BASE, Phase.BUILD)


@dataclass
class BlockRampWarning:
    """Weekly TSS jump between consecutive blocks."""

    from_block_id: str
    to_block_id: str
    increase_pct: float
    reason: str


@dataclass
class PlanFeasibilityCheck:
    valid: bool
    warnings: list[str] = field(default_factory=list)
    block_ramp_warnings: list[BlockRampWarning] = field(default_factory=list)


@dataclass
class _BlockSpec:
    name: str
    phase: Phase
    weeks: int


def fnv1a32(value: str) -> int:
    """32-bit FNV-1a over UTF-16 code units."""
    hash_value = FNV_OFFSET_BASIS
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        hash_value ^= data[i] | (data[i + 1] << 8)
        hash_value = (hash_value * FNV_PRIME) & 0xFFFFFFFF
    return hash_value


def deterministic_uuid_from_seed(seed: str) -> str:
    """Version-4-shaped UUID whose bytes are derived from a seed string."""
    raw = [fnv1a32(f"{seed}:{i}") & 0xFF for i in range(16)]
    raw[6] = (raw[6] & 0x0F) | 0x40
    raw[8] = (raw[8] & 0x3F) | 0x80
    hex_value = bytes(raw).hex()
    return (
        f"{hex_value[0:8]}-{hex_value[8:12]}-{hex_value[12:16]}-"
        f"{hex_value[16:20]}-{hex_value[20:32]}"
    )


def normalize_goal_input(goal: MinimalGoal, id_seed: str = "goal") -> TrainingGoal:
    """Default priority, and a deterministic id unless the goal has one."""
    priority = goal.priority or 1
    targets = [target.model_dump(mode="json") for target in goal.targets]
    targets_json = json.dumps(targets, separators=(",", ":"), ensure_ascii=False)
    seed = (
        f"{id_seed}|{goal.id or ''}|{goal.name}|{goal.target_date.isoformat()}|"
        f"{priority}|{targets_json}"
    )
    return TrainingGoal(
        id=goal.id or deterministic_uuid_from_seed(seed),
        name=goal.name,
        target_date=goal.target_date,
        priority=priority,
        targets=goal.targets,
    )


def goal_categories(goals: Sequence[TrainingGoal]) -> list[str]:
    """Sport categories referenced by goal targets, in canonical order."""
    found: set[str] = set()
    for goal in goals:
        for target in goal.targets:
            if target.target_type == "hr_threshold":
                found.add("run")
            else:
                found.add(target.activity_category.value)
    ordered = [c for c in CATEGORY_ORDER if c in found]
    return ordered or list(DEFAULT_CATEGORIES)


def split_weeks(total_weeks: int) -> list[_BlockSpec]:
    """Phase layout for a plan of the given length."""
    if total_weeks <= 2:
        return [_BlockSpec("Taper", Phase.TAPER, max(total_weeks, 1))]
    if total_weeks < 8:
        return [
            _BlockSpec("Build", Phase.BUILD, total_weeks - 2),
            _BlockSpec("Taper", Phase.TAPER, 2),
        ]
    if total_weeks < 16:
        base = math.floor(total_weeks * 0.30)
        build = math.floor(total_weeks * 0.55)
        return [
            _BlockSpec("Base", Phase.BASE, base),
            _BlockSpec("Build", Phase.BUILD, build),
            _BlockSpec("Taper", Phase.TAPER, total_weeks - base - build),
        ]

    base = math.floor(total_weeks * 0.35)
    build = math.floor(total_weeks * 0.25)
    peak = max(1, math.floor(total_weeks * 0.08))
    return [
        _BlockSpec("Base", Phase.BASE, base),
        _BlockSpec("Build 1", Phase.BUILD, build),
        _BlockSpec("Build 2", Phase.BUILD, build),
        _BlockSpec("Peak", Phase.PEAK, peak),
        _BlockSpec("Taper", Phase.TAPER, total_weeks - base - 2 * build - peak),
    ]


def find_block_for_date(blocks: Sequence[TrainingBlock], day: date) -> TrainingBlock | None:
    """Block covering a day; start and end dates are both inclusive."""
    for block in blocks:
        if block.start_date <= day <= block.end_date:
            return block
    return None


def collect_block_ramp_warnings(
    blocks: Sequence[TrainingBlock], config: PlannerConfig | None = None
) -> list[BlockRampWarning]:
    """Flag weekly TSS jumps between consecutive blocks (15% and 25% by default)."""
    config = config or settings.planner
    ordered = sorted(blocks, key=lambda b: b.start_date)
    warnings: list[BlockRampWarning] = []
    for previous, current in zip(ordered, ordered[1:], strict=False):
        previous_max = previous.target_weekly_tss_range.max
        if previous_max <= 0:
            continue
        increase = (current.target_weekly_tss_range.max - previous_max) / previous_max * 100.0
        if increase > config.block_ramp_exceeded_pct:
            reason = "block_to_block_tss_ramp_exceeds_25pct"
        elif increase > config.block_ramp_caution_pct:
            reason = "block_to_block_tss_ramp_exceeds_15pct"
        else:
            continue
        warnings.append(
            BlockRampWarning(
                from_block_id=previous.id,
                to_block_id=current.id,
                increase_pct=round(increase, 1),
                reason=reason,
            )
        )
    return warnings


def validate_plan_structure(data: Any) -> ValidationResult[PeriodizedPlan | MaintenancePlan]:
    """Parse a stored plan structure into a typed plan.

    Returns a failed ValidationResult listing every problem instead of
    raising.
    """
    try:
        plan = plan_structure_adapter.validate_python(data)
    except ValidationError as exc:
        issues = [
            ValidationIssue(
                path=".".join(str(part) for part in error["loc"]) or "structure",
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        return ValidationResult.failure(issues)
    return ValidationResult.ok(plan)


class PeriodizationPlanner:
    """Builds periodized plans and checks their feasibility."""

    def __init__(
        self,
        config: PlannerConfig | None = None,
        tracker: TrainingLoadTracker | None = None,
    ) -> None:
        self.config = config or settings.planner
        self.tracker = tracker or TrainingLoadTracker()
        self.logger = logger.bind(service="planner")

    def expand_minimal_goal_to_plan(
        self,
        goals: Sequence[MinimalGoal | TrainingGoal],
        reference_date: date,
        starting_ctl: float,
        owner_id: str = "",
        name: str | None = None,
    ) -> PeriodizedPlan:
        """Synthesize a full periodized plan from minimal goals.

        Args:
            goals: One or more goals (minimal or already normalized)
            reference_date: Plan start ("today")
            starting_ctl: Current chronic training load
            owner_id: Athlete id mixed into the plan id
            name: Optional plan name

        Returns:
            A validated PeriodizedPlan

        Raises:
            InvalidInputError: If no goals are given or the latest goal is
                before the reference date
        """
        if not goals:
            raise InvalidInputError("At least one goal is required")

        normalized = [
            g if isinstance(g, TrainingGoal) else normalize_goal_input(g) for g in goals
        ]
        end_date = max(g.target_date for g in normalized)
        if end_date < reference_date:
            raise InvalidInputError(
                "Latest goal target date is before the reference date",
                [ValidationIssue("goals.target_date", "must not be in the past")],
            )

        plan_days = (end_date - reference_date).days + 1
        total_weeks = max(1, math.ceil(plan_days / 7))
        specs = [s for s in split_weeks(total_weeks) if s.weeks > 0]

        ramp = self.config.weekly_ramp_rate
        loading_weeks = sum(s.weeks for s in specs if s.phase in LOADING_PHASES)
        peak_ctl = min(starting_ctl + ramp * loading_weeks, self.config.max_peak_ctl)

        goal_ids = [g.id for g in normalized]
        plan_id = deterministic_uuid_from_seed(f"{owner_id}|{'|'.join(goal_ids)}|preview-plan")

        blocks: list[TrainingBlock] = []
        weeks_before = 0
        for index, spec in enumerate(specs):
            start = reference_date + timedelta(days=weeks_before * 7)
            end = min(start + timedelta(days=spec.weeks * 7 - 1), end_date)
            if index == len(specs) - 1:
                end = end_date

            weekly_tss = self._weekly_tss(spec, weeks_before, starting_ctl, peak_ctl, ramp)
            profile = PHASE_CHARACTERISTICS[spec.phase]
            spread = self.config.tss_range_spread
            blocks.append(
                TrainingBlock(
                    id=deterministic_uuid_from_seed(f"{plan_id}|block|{index}"),
                    name=spec.name,
                    start_date=start,
                    end_date=end,
                    goal_ids=goal_ids,
                    phase=spec.phase,
                    intensity_distribution=IntensityDistribution(**profile.intensity),
                    target_weekly_tss_range=TssRange(
                        min=float(round(weekly_tss * (1 - spread))),
                        max=float(round(weekly_tss * (1 + spread))),
                    ),
                    target_sessions_per_week_range=SessionRange(
                        min=profile.sessions[0], max=profile.sessions[1]
                    ),
                    description=profile.description,
                )
            )
            weeks_before += spec.weeks

        categories = goal_categories(normalized)
        share = round(1.0 / len(categories), 4)
        primary = max(normalized, key=lambda g: (g.priority, g.target_date))

        plan = PeriodizedPlan(
            id=plan_id,
            name=name or f"Road to {primary.name}",
            start_date=reference_date,
            end_date=end_date,
            goals=normalized,
            fitness_progression=FitnessProgression(
                starting_ctl=round(starting_ctl, 1),
                target_ctl_at_peak=round(peak_ctl, 1),
                weekly_ramp_rate=ramp,
            ),
            activity_distribution={c: share for c in categories},
            blocks=blocks,
        )
        self.logger.info(
            "Expanded goals to plan",
            plan_id=plan_id,
            goals=len(normalized),
            weeks=total_weeks,
            blocks=len(blocks),
        )
        return plan

    def _weekly_tss(
        self,
        spec: _BlockSpec,
        weeks_before: int,
        starting_ctl: float,
        peak_ctl: float,
        ramp: float,
    ) -> float:
        if spec.phase == Phase.TAPER:
            return 7 * peak_ctl * self.config.taper_factor
        if spec.phase == Phase.PEAK:
            return 7 * peak_ctl
        midpoint_ctl = min(starting_ctl + ramp * (weeks_before + spec.weeks / 2), peak_ctl)
        return 7 * self.tracker.target_daily_tss(midpoint_ctl, midpoint_ctl + ramp, 7)

    def validate_plan_feasibility(self, plan: PeriodizedPlan) -> PlanFeasibilityCheck:
        """Check block continuity, CTL ramp and block-to-block load jumps."""
        warnings: list[str] = []
        ordered = sorted(plan.blocks, key=lambda b: b.start_date)
        for previous, current in zip(ordered, ordered[1:], strict=False):
            gap = (current.start_date - previous.end_date).days
            if gap > self.config.block_gap_days:
                warnings.append(f"Gap of {gap} days between blocks")

        weeks = max(1, math.ceil((plan.end_date - plan.start_date).days / 7))
        progression = plan.fitness_progression
        weekly_increase = (progression.target_ctl_at_peak - progression.starting_ctl) / weeks
        if weekly_increase > self.config.max_weekly_ctl_increase:
            warnings.append(f"CTL increase of {weekly_increase:.1f} per week may be too aggressive")

        return PlanFeasibilityCheck(
            valid=not warnings,
            warnings=warnings,
            block_ramp_warnings=collect_block_ramp_warnings(ordered, self.config),
        )

    def calculate_ctl_projection(
        self, plan: PeriodizedPlan, starting_ctl: float | None = None
    ) -> list[dict[str, Any]]:
        """Week-by-week projected CTL following each block's midpoint load.

        Every ``recovery_week_interval``-th week inside a loading block is a
        recovery week at ``recovery_week_factor`` of the block load.
        """
        ctl = plan.fitness_progression.starting_ctl if starting_ctl is None else starting_ctl
        state = TrainingLoadState(ctl=ctl, atl=ctl)

        points: list[dict[str, Any]] = []
        week_start = plan.start_date
        week_index = 0
        interval = self.config.recovery_week_interval
        while week_start <= plan.end_date:
            block = find_block_for_date(plan.blocks, week_start)
            weekly_tss = block.midpoint_weekly_tss if block else 0.0
            recovery = (
                block is not None
                and block.phase in LOADING_PHASES
                and week_index % interval == interval - 1
            )
            if recovery:
                weekly_tss *= self.config.recovery_week_factor

            state = self.tracker.project(state, [weekly_tss / 7] * 7)[-1]
            points.append(
                {
                    "week_start": week_start.isoformat(),
                    "block": block.name if block else None,
                    "phase": block.phase.value if block else None,
                    "recovery_week": recovery,
                    "weekly_tss": round(weekly_tss, 1),
                    "ctl": round(state.ctl, 1),
                    "atl": round(state.atl, 1),
                    "tsb": round(state.tsb, 1),
                }
            )
            week_start += timedelta(days=7)
            week_index += 1
        return points
