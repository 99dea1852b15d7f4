"""Training plan and planned activity service."""

from collections.abc import Sequence
from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.core.errors import NotFoundError
from training_load_server.models.base import generate_uuid
from training_load_server.models.planned_activity import PlannedActivity
from training_load_server.models.training_plan import TrainingPlan
from training_load_server.schemas.plan import MaintenancePlan, MinimalGoal, PeriodizedPlan
from training_load_server.schemas.requests import PlannedActivityCreate
from training_load_server.services.planner import PeriodizationPlanner, validate_plan_structure
from training_load_server.services.training_load import estimate_tss

logger = structlog.get_logger()


def planned_tss(planned: PlannedActivity) -> float:
    """Explicit TSS estimate, else derived from duration and effort."""
    if planned.estimated_tss is not None:
        return planned.estimated_tss
    if planned.estimated_duration_seconds:
        return estimate_tss(planned.estimated_duration_seconds / 60, planned.effort_level)
    return 0.0


def parse_structure(plan: TrainingPlan) -> PeriodizedPlan | MaintenancePlan:
    """Typed view of a stored plan structure.

    Raises:
        InvalidInputError: If the stored structure no longer validates
    """
    return validate_plan_structure(plan.structure).unwrap()


class TrainingPlanService:
    """Creates plans, tracks the active plan and schedules sessions.

    Each athlete has at most one active plan. Creating or activating a
    plan deactivates the others; older plans are kept for history.
    """

    def __init__(self, session: AsyncSession, planner: PeriodizationPlanner | None = None) -> None:
        """Initialize training plan service.

        Args:
            session: Database session
            planner: Plan generator (default config when omitted)
        """
        self.session = session
        self.planner = planner or PeriodizationPlanner()
        self.logger = logger.bind(service="training_plan")

    async def create_plan(
        self,
        user_id: str,
        name: str,
        structure: dict[str, Any],
        description: str | None = None,
        activate: bool = True,
    ) -> TrainingPlan:
        """Validate and store a plan.

        The stored structure takes the new row's id.

        Raises:
            InvalidInputError: If the structure fails validation
        """
        parsed = validate_plan_structure(structure).unwrap()

        plan_id = generate_uuid()
        stored = parsed.model_dump(mode="json")
        stored["id"] = plan_id

        if activate:
            await self._deactivate_all(user_id)

        plan = TrainingPlan(
            id=plan_id,
            user_id=user_id,
            name=name,
            description=description,
            plan_type=parsed.plan_type,
            structure=stored,
            is_active=activate,
        )
        self.session.add(plan)
        await self.session.commit()
        await self.session.refresh(plan)

        self.logger.info(
            "Training plan created",
            user_id=user_id,
            plan_id=plan.id,
            plan_type=plan.plan_type,
            active=activate,
        )
        return plan

    async def create_from_minimal_goals(
        self,
        user_id: str,
        goals: Sequence[MinimalGoal],
        reference_date: date,
        starting_ctl: float,
        name: str | None = None,
    ) -> TrainingPlan:
        """Expand minimal goals into a periodized plan and store it as active."""
        preview = self.planner.expand_minimal_goal_to_plan(
            goals, reference_date, starting_ctl, owner_id=user_id, name=name
        )
        return await self.create_plan(
            user_id,
            preview.name,
            preview.model_dump(mode="json"),
            description=f"Generated from {len(preview.goals)} goal(s)",
        )

    async def get_plan(self, user_id: str, plan_id: str) -> TrainingPlan:
        """Fetch a plan owned by the athlete.

        Raises:
            NotFoundError: If it does not exist or belongs to someone else
        """
        stmt = select(TrainingPlan).where(
            TrainingPlan.id == plan_id,
            TrainingPlan.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        plan = result.scalar_one_or_none()
        if plan is None:
            raise NotFoundError("Training plan not found", {"plan_id": plan_id})
        return plan

    async def list_plans(self, user_id: str) -> list[TrainingPlan]:
        stmt = (
            select(TrainingPlan)
            .where(TrainingPlan.user_id == user_id)
            .order_by(TrainingPlan.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_active_plan(self, user_id: str) -> TrainingPlan | None:
        """The athlete's active plan.

        If several plans are active, the most recently created one is kept
        and the rest are deactivated.
        """
        stmt = (
            select(TrainingPlan)
            .where(TrainingPlan.user_id == user_id, TrainingPlan.is_active.is_(True))
            .order_by(TrainingPlan.created_at.desc(), TrainingPlan.id.desc())
        )
        result = await self.session.execute(stmt)
        active = list(result.scalars().all())
        if not active:
            return None

        if len(active) > 1:
            self.logger.warning(
                "Multiple active plans found, deactivating older plans",
                user_id=user_id,
                kept_plan_id=active[0].id,
                deactivated=[p.id for p in active[1:]],
            )
            for plan in active[1:]:
                plan.is_active = False
            await self.session.commit()

        return active[0]

    async def activate(self, user_id: str, plan_id: str) -> TrainingPlan:
        plan = await self.get_plan(user_id, plan_id)
        await self._deactivate_all(user_id)
        plan.is_active = True
        await self.session.commit()
        await self.session.refresh(plan)
        self.logger.info("Training plan activated", user_id=user_id, plan_id=plan_id)
        return plan

    async def deactivate(self, user_id: str, plan_id: str) -> TrainingPlan:
        plan = await self.get_plan(user_id, plan_id)
        plan.is_active = False
        await self.session.commit()
        await self.session.refresh(plan)
        return plan

    async def _deactivate_all(self, user_id: str) -> None:
        stmt = select(TrainingPlan).where(
            TrainingPlan.user_id == user_id,
            TrainingPlan.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        for plan in result.scalars().all():
            plan.is_active = False

    async def schedule_activity(
        self,
        user_id: str,
        data: PlannedActivityCreate,
        plan_id: str | None = None,
    ) -> PlannedActivity:
        """Add a planned session, optionally under one of the athlete's plans."""
        if plan_id is not None:
            await self.get_plan(user_id, plan_id)

        planned = PlannedActivity(
            user_id=user_id,
            training_plan_id=plan_id,
            scheduled_date=data.scheduled_date,
            name=data.name,
            activity_category=data.activity_category.value,
            estimated_duration_seconds=data.estimated_duration_seconds,
            effort_level=data.effort_level.value,
            estimated_tss=data.estimated_tss,
        )
        self.session.add(planned)
        await self.session.commit()
        await self.session.refresh(planned)
        return planned

    async def list_planned_activities(
        self,
        user_id: str,
        start: date,
        end: date,
        plan_id: str | None = None,
    ) -> list[PlannedActivity]:
        """Planned sessions in [start, end], oldest first."""
        stmt = select(PlannedActivity).where(
            PlannedActivity.user_id == user_id,
            PlannedActivity.scheduled_date >= start,
            PlannedActivity.scheduled_date <= end,
        )
        if plan_id is not None:
            stmt = stmt.where(PlannedActivity.training_plan_id == plan_id)
        stmt = stmt.order_by(PlannedActivity.scheduled_date)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def scheduled_tss_by_date(
        self,
        user_id: str,
        start: date,
        end: date,
        plan_id: str | None = None,
    ) -> dict[date, float]:
        """Scheduled TSS summed per day (days without sessions omitted)."""
        totals: dict[date, float] = {}
        for planned in await self.list_planned_activities(user_id, start, end, plan_id):
            day = planned.scheduled_date
            totals[day] = totals.get(day, 0.0) + planned_tss(planned)
        return totals
