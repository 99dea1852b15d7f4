"""Tests for training plan storage and scheduling."""

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.core.errors import InvalidInputError, NotFoundError
from training_load_server.models.planned_activity import EffortLevel
from training_load_server.models.training_plan import TrainingPlan
from training_load_server.schemas.plan import MinimalGoal
from training_load_server.schemas.requests import PlannedActivityCreate
from training_load_server.services.training_plan import TrainingPlanService, planned_tss

OTHER_USER_ID = "athlete-002"
REFERENCE = date(2026, 3, 2)


def maintenance_structure(**overrides) -> dict:
    data = {
        "plan_type": "maintenance",
        "id": "draft",
        "name": "Winter maintenance",
        "start_date": REFERENCE.isoformat(),
        "target_weekly_tss_range": {"min": 300, "max": 400},
    }
    data.update(overrides)
    return data


def goal() -> MinimalGoal:
    return MinimalGoal.model_validate(
        {
            "name": "Club 10k",
            "target_date": (REFERENCE + timedelta(weeks=10)).isoformat(),
            "targets": [
                {
                    "target_type": "race_performance",
                    "distance_m": 10000,
                    "target_time_s": 2700,
                    "activity_category": "run",
                }
            ],
        }
    )


class TestTrainingPlanService:
    """Tests for TrainingPlanService."""

    @pytest.mark.asyncio
    async def test_create_plan_stores_row_id(self, async_session: AsyncSession, user_id: str):
        plan = await TrainingPlanService(async_session).create_plan(
            user_id, "Winter", maintenance_structure()
        )

        assert plan.is_active
        assert plan.plan_type == "maintenance"
        assert plan.structure["id"] == plan.id

    @pytest.mark.asyncio
    async def test_invalid_structure_rejected(self, async_session: AsyncSession, user_id: str):
        with pytest.raises(InvalidInputError) as exc_info:
            await TrainingPlanService(async_session).create_plan(
                user_id,
                "Broken",
                maintenance_structure(target_weekly_tss_range={"min": 500, "max": 100}),
            )
        assert exc_info.value.issues

    @pytest.mark.asyncio
    async def test_new_plan_deactivates_previous(self, async_session: AsyncSession, user_id: str):
        service = TrainingPlanService(async_session)
        first = await service.create_plan(user_id, "First", maintenance_structure())
        second = await service.create_plan(user_id, "Second", maintenance_structure())

        await async_session.refresh(first)
        active = await service.get_active_plan(user_id)

        assert not first.is_active
        assert active.id == second.id

    @pytest.mark.asyncio
    async def test_multiple_active_plans_self_heal(
        self, async_session: AsyncSession, user_id: str
    ):
        now = datetime.now(UTC)
        older = TrainingPlan(
            user_id=user_id,
            name="Older",
            plan_type="maintenance",
            structure=maintenance_structure(),
            is_active=True,
            created_at=now - timedelta(days=2),
        )
        newer = TrainingPlan(
            user_id=user_id,
            name="Newer",
            plan_type="maintenance",
            structure=maintenance_structure(),
            is_active=True,
            created_at=now,
        )
        async_session.add_all([older, newer])
        await async_session.commit()

        service = TrainingPlanService(async_session)
        active = await service.get_active_plan(user_id)

        assert active.id == newer.id
        await async_session.refresh(older)
        assert not older.is_active

    @pytest.mark.asyncio
    async def test_activate(self, async_session: AsyncSession, user_id: str):
        service = TrainingPlanService(async_session)
        first = await service.create_plan(user_id, "First", maintenance_structure())
        await service.create_plan(user_id, "Second", maintenance_structure())

        await service.activate(user_id, first.id)

        active = await service.get_active_plan(user_id)
        assert active.id == first.id
        assert len([p for p in await service.list_plans(user_id) if p.is_active]) == 1

    @pytest.mark.asyncio
    async def test_plans_are_user_scoped(self, async_session: AsyncSession, user_id: str):
        service = TrainingPlanService(async_session)
        plan = await service.create_plan(user_id, "Mine", maintenance_structure())

        with pytest.raises(NotFoundError):
            await service.get_plan(OTHER_USER_ID, plan.id)
        with pytest.raises(NotFoundError):
            await service.activate(OTHER_USER_ID, plan.id)
        assert await service.get_active_plan(OTHER_USER_ID) is None

    @pytest.mark.asyncio
    async def test_create_from_minimal_goals(self, async_session: AsyncSession, user_id: str):
        plan = await TrainingPlanService(async_session).create_from_minimal_goals(
            user_id, [goal()], REFERENCE, starting_ctl=35.0
        )

        assert plan.plan_type == "periodized"
        assert plan.name == "Road to Club 10k"
        assert plan.structure["id"] == plan.id
        assert plan.structure["fitness_progression"]["starting_ctl"] == 35.0


class TestPlannedActivities:
    """Tests for scheduling planned sessions."""

    @pytest.mark.asyncio
    async def test_schedule_and_list(self, async_session: AsyncSession, user_id: str):
        service = TrainingPlanService(async_session)
        plan = await service.create_plan(user_id, "Winter", maintenance_structure())
        for offset, effort in enumerate([EffortLevel.EASY, EffortLevel.HARD]):
            await service.schedule_activity(
                user_id,
                PlannedActivityCreate(
                    scheduled_date=REFERENCE + timedelta(days=offset),
                    name=f"Session {offset}",
                    estimated_duration_seconds=3600,
                    effort_level=effort,
                ),
                plan_id=plan.id,
            )

        planned = await service.list_planned_activities(
            user_id, REFERENCE, REFERENCE + timedelta(days=6), plan.id
        )
        totals = await service.scheduled_tss_by_date(
            user_id, REFERENCE, REFERENCE + timedelta(days=6)
        )

        assert [p.name for p in planned] == ["Session 0", "Session 1"]
        assert totals[REFERENCE] == 42.0
        assert totals[REFERENCE + timedelta(days=1)] == 90.0

    @pytest.mark.asyncio
    async def test_explicit_tss_wins(self, async_session: AsyncSession, user_id: str):
        planned = await TrainingPlanService(async_session).schedule_activity(
            user_id,
            PlannedActivityCreate(
                scheduled_date=REFERENCE,
                name="Long run",
                estimated_duration_seconds=7200,
                estimated_tss=130,
            ),
        )
        assert planned_tss(planned) == 130

    @pytest.mark.asyncio
    async def test_schedule_under_foreign_plan_rejected(
        self, async_session: AsyncSession, user_id: str
    ):
        service = TrainingPlanService(async_session)
        plan = await service.create_plan(user_id, "Mine", maintenance_structure())

        with pytest.raises(NotFoundError):
            await service.schedule_activity(
                OTHER_USER_ID,
                PlannedActivityCreate(scheduled_date=REFERENCE, name="Sneaky"),
                plan_id=plan.id,
            )
