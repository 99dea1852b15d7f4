"""Training insights aggregation service.

Combines stored activities, plans and planned sessions with the pure
load, zone, planning and feasibility engines. Nothing is cached: every
call recomputes load state from activity history.
"""

from collections.abc import Sequence
from dataclasses import asdict
from datetime import UTC, date, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.core.errors import BadRequestError, NotFoundError
from training_load_server.models.training_plan import TrainingPlan
from training_load_server.schemas.plan import MaintenancePlan, MinimalGoal, PeriodizedPlan
from training_load_server.services.activity import ActivityService
from training_load_server.services.feasibility import FeasibilityAssessor
from training_load_server.services.planner import (
    PeriodizationPlanner,
    find_block_for_date,
    normalize_goal_input,
)
from training_load_server.services.training_load import (
    LoadPoint,
    TrainingLoadState,
    TrainingLoadTracker,
)
from training_load_server.services.training_plan import (
    TrainingPlanService,
    parse_structure,
    planned_tss,
)
from training_load_server.services.zones import IntensityZoneClassifier

logger = structlog.get_logger()

# Days of history replayed for "current" load state
STATUS_HISTORY_DAYS = 90
UPCOMING_DAYS = 5

# Weekly summary thresholds (percent of plan completed)
SUMMARY_POOR_BELOW = 70
SUMMARY_WARNING_BELOW = 90


def today_utc() -> date:
    return datetime.now(UTC).date()


def week_start_for(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


class InsightsService:
    """Load, intensity, plan progress and feasibility insights for an athlete."""

    def __init__(
        self,
        session: AsyncSession,
        tracker: TrainingLoadTracker | None = None,
        classifier: IntensityZoneClassifier | None = None,
        planner: PeriodizationPlanner | None = None,
        assessor: FeasibilityAssessor | None = None,
    ) -> None:
        """Initialize insights service.

        Args:
            session: Database session
            tracker: CTL/ATL tracker
            classifier: Intensity zone classifier
            planner: Periodization planner
            assessor: Feasibility assessor
        """
        self.session = session
        self.tracker = tracker or TrainingLoadTracker()
        self.classifier = classifier or IntensityZoneClassifier()
        self.planner = planner or PeriodizationPlanner(tracker=self.tracker)
        self.assessor = assessor or FeasibilityAssessor()
        self.activities = ActivityService(session)
        self.plans = TrainingPlanService(session, self.planner)
        self.logger = logger.bind(service="insights")

    # ------------------------------------------------------------------
    # Training load
    # ------------------------------------------------------------------

    async def _seed_before(self, user_id: str, start: date) -> TrainingLoadState:
        window = self.tracker.config.seed_window_days
        trailing = await self.activities.daily_tss(
            user_id, start - timedelta(days=window), start - timedelta(days=1)
        )
        return self.tracker.estimate_seed(trailing)

    async def get_load_series(self, user_id: str, start: date, end: date) -> list[LoadPoint]:
        """Daily CTL/ATL/TSB over [start, end], seeded from prior history."""
        self.assessor.validate_window(start, end)
        seed = await self._seed_before(user_id, start)
        daily = await self.activities.daily_tss(user_id, start, end)
        return self.tracker.calculate_series(daily, seed)

    async def get_current_state(
        self, user_id: str, as_of: date | None = None
    ) -> TrainingLoadState:
        """Unrounded load state at the end of as_of."""
        as_of = as_of or today_utc()
        start = as_of - timedelta(days=STATUS_HISTORY_DAYS - 1)
        seed = await self._seed_before(user_id, start)
        daily = await self.activities.daily_tss(user_id, start, as_of)
        return self.tracker.final_state(daily, seed)

    async def estimate_current_ctl(self, user_id: str, as_of: date | None = None) -> float:
        state = await self.get_current_state(user_id, as_of)
        return round(state.ctl, 1)

    async def get_current_status(
        self, user_id: str, as_of: date | None = None
    ) -> dict[str, Any]:
        """Load state, ramp rate, week progress and upcoming sessions."""
        as_of = as_of or today_utc()
        series = await self.get_load_series(
            user_id, as_of - timedelta(days=STATUS_HISTORY_DAYS - 1), as_of
        )
        current = series[-1]
        week_ago = series[-8] if len(series) >= 8 else series[0]
        state = TrainingLoadState(ctl=current.ctl, atl=current.atl)
        analysis = self.tracker.analyze(state)
        ramp = self.tracker.calculate_ramp_rate(current.ctl, week_ago.ctl)

        week_start = week_start_for(as_of)
        week_end = week_start + timedelta(days=6)
        completed = sum(p.tss for p in series if week_start <= p.date <= as_of)
        planned = await self.plans.list_planned_activities(user_id, week_start, week_end)
        upcoming = await self.plans.list_planned_activities(
            user_id, as_of + timedelta(days=1), as_of + timedelta(days=UPCOMING_DAYS)
        )

        return {
            "date": as_of.isoformat(),
            "training_load": asdict(analysis),
            "ramp_rate": ramp,
            "ramp_rate_safe": self.tracker.is_ramp_rate_safe(ramp),
            "recommended_daily_tss": self.tracker.recommended_daily_tss(
                current.ctl, current.ctl + self.tracker.config.recommended_weekly_ramp
            ),
            "week": {
                "start": week_start.isoformat(),
                "completed_tss": round(completed, 1),
                "planned_tss": round(sum(planned_tss(p) for p in planned), 1),
                "target_tss": await self._weekly_target(user_id, as_of),
            },
            "upcoming": [
                {
                    "id": p.id,
                    "date": p.scheduled_date.isoformat(),
                    "name": p.name,
                    "activity_category": p.activity_category,
                    "effort_level": p.effort_level,
                    "estimated_tss": planned_tss(p),
                }
                for p in upcoming
            ],
        }

    async def _weekly_target(self, user_id: str, day: date) -> float | None:
        plan = await self.plans.get_active_plan(user_id)
        if plan is None:
            return None
        structure = parse_structure(plan)
        if isinstance(structure, MaintenancePlan):
            return structure.target_weekly_tss_range.max
        block = find_block_for_date(structure.blocks, day)
        return block.target_weekly_tss_range.max if block else None

    async def get_projection(
        self, user_id: str, plan_id: str | None = None, as_of: date | None = None
    ) -> dict[str, Any]:
        """Weekly CTL projection through a periodized plan from current CTL.

        Raises:
            NotFoundError: If the plan does not exist or there is no active plan
            BadRequestError: If the plan is not periodized
        """
        plan = await self._resolve_plan(user_id, plan_id)
        structure = parse_structure(plan)
        if not isinstance(structure, PeriodizedPlan):
            raise BadRequestError("Projection requires a periodized plan", {"plan_id": plan.id})

        current_ctl = await self.estimate_current_ctl(user_id, as_of)
        return {
            "plan_id": plan.id,
            "starting_ctl": current_ctl,
            "target_ctl_at_peak": structure.fitness_progression.target_ctl_at_peak,
            "weeks": self.planner.calculate_ctl_projection(structure, current_ctl),
        }

    async def _resolve_plan(self, user_id: str, plan_id: str | None) -> TrainingPlan:
        if plan_id is not None:
            return await self.plans.get_plan(user_id, plan_id)
        plan = await self.plans.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError("No active training plan", {"user_id": user_id})
        return plan

    # ------------------------------------------------------------------
    # Intensity
    # ------------------------------------------------------------------

    async def get_intensity_distribution(
        self, user_id: str, start: date, end: date
    ) -> dict[str, Any]:
        self.assessor.validate_window(start, end)
        activities = await self.activities.scored_activities(user_id, start, end)
        return asdict(self.classifier.distribution(activities))

    async def get_intensity_trends(self, user_id: str, start: date, end: date) -> dict[str, Any]:
        self.assessor.validate_window(start, end)
        activities = await self.activities.scored_activities(user_id, start, end)
        return asdict(self.classifier.weekly_trends(activities))

    # ------------------------------------------------------------------
    # Plan progress
    # ------------------------------------------------------------------

    async def get_weekly_summary(
        self, user_id: str, week_of: date | None = None
    ) -> dict[str, Any]:
        """Completed vs planned load and sessions for one Monday-start week."""
        week_start = week_start_for(week_of or today_utc())
        week_end = week_start + timedelta(days=6)

        activities = await self.activities.list_activities(user_id, week_start, week_end)
        planned = await self.plans.list_planned_activities(user_id, week_start, week_end)

        completed_tss = sum(a.training_stress_score or 0.0 for a in activities)
        planned_total = sum(planned_tss(p) for p in planned)

        tss_pct = round(completed_tss / planned_total * 100, 1) if planned_total > 0 else None
        activity_pct = round(len(activities) / len(planned) * 100, 1) if planned else None

        if tss_pct is None and activity_pct is None:
            status = "no_plan"
        else:
            checks = [p for p in (tss_pct, activity_pct) if p is not None]
            if any(p < SUMMARY_POOR_BELOW for p in checks):
                status = "poor"
            elif any(p < SUMMARY_WARNING_BELOW for p in checks):
                status = "warning"
            else:
                status = "good"

        return {
            "week_start": week_start.isoformat(),
            "week_end": week_end.isoformat(),
            "completed_tss": round(completed_tss, 1),
            "planned_tss": round(planned_total, 1),
            "completed_activities": len(activities),
            "planned_activities": len(planned),
            "tss_completion_pct": tss_pct,
            "activity_completion_pct": activity_pct,
            "status": status,
        }

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    async def get_feasibility_preview(
        self,
        user_id: str,
        goals: Sequence[MinimalGoal],
        reference_date: date | None = None,
    ) -> dict[str, Any]:
        """Preview the plan minimal goals would produce, with its assessment."""
        reference_date = reference_date or today_utc()
        current_ctl = await self.estimate_current_ctl(user_id, reference_date)

        normalized = [normalize_goal_input(g) for g in goals]
        plan = self.planner.expand_minimal_goal_to_plan(
            normalized, reference_date, current_ctl, owner_id=user_id
        )
        check = self.planner.validate_plan_feasibility(plan)
        target_ctl = plan.fitness_progression.target_ctl_at_peak

        goal_assessments = [
            self.assessor.assess_goal(g, reference_date, current_ctl, target_ctl)
            for g in normalized
        ]
        plan_assessment = self.assessor.assess_plan(goal_assessments, check)

        self.logger.info(
            "Feasibility preview",
            user_id=user_id,
            goals=len(normalized),
            feasibility=plan_assessment.feasibility_state.value,
            safety=plan_assessment.safety_state.value,
        )
        return {
            "plan": plan.model_dump(mode="json"),
            "plan_assessment": asdict(plan_assessment),
            "goal_assessments": [asdict(a) for a in goal_assessments],
            "normalized_goals": [g.model_dump(mode="json") for g in normalized],
            "block_ramp_warnings": [asdict(w) for w in check.block_ramp_warnings],
            "key_metrics": {
                "reference_date": reference_date.isoformat(),
                "days_until_goal": min(a.days_until_goal for a in goal_assessments),
                "plan_duration_days": (plan.end_date - plan.start_date).days + 1,
                "block_count": len(plan.blocks),
                "goal_count": len(normalized),
                "estimated_current_ctl": current_ctl,
                "target_weekly_tss_avg": round(
                    sum(b.midpoint_weekly_tss for b in plan.blocks) / len(plan.blocks)
                ),
            },
        }

    async def get_insight_timeline(
        self,
        user_id: str,
        start: date,
        end: date,
        plan_id: str | None = None,
        reference_date: date | None = None,
    ) -> dict[str, Any]:
        """Ideal vs scheduled vs actual load per day, with plan safety."""
        self.assessor.validate_window(start, end)
        plan = await self._resolve_plan(user_id, plan_id)
        structure = parse_structure(plan)
        reference_date = reference_date or today_utc()

        scheduled = await self.plans.scheduled_tss_by_date(user_id, start, end, plan.id)
        actual = await self.activities.daily_tss(user_id, start, end)
        activities = await self.activities.list_activities(user_id, start, end)

        if isinstance(structure, PeriodizedPlan):
            blocks = structure.blocks
            default_weekly = None
            current_ctl = await self.estimate_current_ctl(user_id, reference_date)
            target_ctl = structure.fitness_progression.target_ctl_at_peak
            goal_assessments = [
                self.assessor.assess_goal(g, reference_date, current_ctl, target_ctl)
                for g in structure.goals
            ]
            plan_assessment = self.assessor.assess_plan(
                goal_assessments, self.planner.validate_plan_feasibility(structure)
            )
        else:
            blocks = []
            tss_range = structure.target_weekly_tss_range
            default_weekly = (tss_range.min + tss_range.max) / 2
            goal_assessments = []
            plan_assessment = self.assessor.assess_plan([])

        points = self.assessor.build_timeline(
            start, end, blocks, scheduled, actual, default_weekly_tss=default_weekly
        )
        summary = self.assessor.summarize_timeline(
            points, plan_assessment.safety_state, len(activities)
        )
        return {
            "plan_id": plan.id,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "points": [asdict(p) for p in points],
            "summary": asdict(summary),
            "plan_assessment": asdict(plan_assessment),
            "goal_assessments": [asdict(a) for a in goal_assessments],
        }
