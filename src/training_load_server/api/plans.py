"""Training plan and planned activity endpoints."""

from datetime import date, timedelta
from typing import Annotated, Any

from litestar import Router, get, post
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.api.params import resolve_window, validate_user_id
from training_load_server.core.errors import NotFoundError
from training_load_server.models.planned_activity import PlannedActivity
from training_load_server.models.training_plan import TrainingPlan
from training_load_server.schemas.requests import (
    MinimalGoalPlanRequest,
    PlanCreate,
    PlannedActivityCreate,
)
from training_load_server.services.insights import InsightsService, today_utc
from training_load_server.services.training_plan import TrainingPlanService, planned_tss


def plan_to_dict(plan: TrainingPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "user_id": plan.user_id,
        "name": plan.name,
        "description": plan.description,
        "plan_type": plan.plan_type,
        "is_active": plan.is_active,
        "structure": plan.structure,
        "created_at": plan.created_at.isoformat() if plan.created_at else None,
    }


def planned_activity_to_dict(planned: PlannedActivity) -> dict[str, Any]:
    return {
        "id": planned.id,
        "training_plan_id": planned.training_plan_id,
        "scheduled_date": planned.scheduled_date.isoformat(),
        "name": planned.name,
        "activity_category": planned.activity_category,
        "estimated_duration_seconds": planned.estimated_duration_seconds,
        "effort_level": planned.effort_level,
        "estimated_tss": round(planned_tss(planned), 1),
    }


@post("/users/{user_id:str}/plans", status_code=HTTP_201_CREATED)
async def create_plan(
    user_id: str,
    data: PlanCreate,
    session: AsyncSession,
) -> dict[str, Any]:
    """Store a plan structure and make it the active plan.

    Structures that fail validation are rejected with 422 and the list of
    issues found.
    """
    validate_user_id(user_id)
    plan = await TrainingPlanService(session).create_plan(
        user_id, data.name, data.structure, description=data.description
    )
    return plan_to_dict(plan)


@post("/users/{user_id:str}/plans/from-goals", status_code=HTTP_201_CREATED)
async def create_plan_from_goals(
    user_id: str,
    data: MinimalGoalPlanRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Generate a periodized plan from minimal goals and activate it."""
    validate_user_id(user_id)
    reference_date = data.reference_date or today_utc()
    insights = InsightsService(session)
    current_ctl = await insights.estimate_current_ctl(user_id, reference_date)
    plan = await insights.plans.create_from_minimal_goals(
        user_id, data.goals, reference_date, current_ctl, name=data.name
    )
    return plan_to_dict(plan)


@post("/users/{user_id:str}/plans/preview", status_code=HTTP_200_OK)
async def preview_plan(
    user_id: str,
    data: MinimalGoalPlanRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Preview the plan minimal goals would produce, without storing it."""
    validate_user_id(user_id)
    return await InsightsService(session).get_feasibility_preview(
        user_id, data.goals, data.reference_date
    )


@get("/users/{user_id:str}/plans", status_code=HTTP_200_OK)
async def list_plans(user_id: str, session: AsyncSession) -> list[dict[str, Any]]:
    validate_user_id(user_id)
    plans = await TrainingPlanService(session).list_plans(user_id)
    return [plan_to_dict(p) for p in plans]


@get("/users/{user_id:str}/plans/active", status_code=HTTP_200_OK)
async def get_active_plan(user_id: str, session: AsyncSession) -> dict[str, Any]:
    validate_user_id(user_id)
    plan = await TrainingPlanService(session).get_active_plan(user_id)
    if plan is None:
        raise NotFoundError("No active training plan", {"user_id": user_id})
    return plan_to_dict(plan)


@get("/users/{user_id:str}/plans/{plan_id:str}", status_code=HTTP_200_OK)
async def get_plan(user_id: str, plan_id: str, session: AsyncSession) -> dict[str, Any]:
    validate_user_id(user_id)
    plan = await TrainingPlanService(session).get_plan(user_id, plan_id)
    return plan_to_dict(plan)


@post("/users/{user_id:str}/plans/{plan_id:str}/activate", status_code=HTTP_200_OK)
async def activate_plan(user_id: str, plan_id: str, session: AsyncSession) -> dict[str, Any]:
    """Make a plan active; any other active plan is deactivated."""
    validate_user_id(user_id)
    plan = await TrainingPlanService(session).activate(user_id, plan_id)
    return plan_to_dict(plan)


@post("/users/{user_id:str}/plans/{plan_id:str}/deactivate", status_code=HTTP_200_OK)
async def deactivate_plan(user_id: str, plan_id: str, session: AsyncSession) -> dict[str, Any]:
    validate_user_id(user_id)
    plan = await TrainingPlanService(session).deactivate(user_id, plan_id)
    return plan_to_dict(plan)


@get("/users/{user_id:str}/plans/{plan_id:str}/timeline", status_code=HTTP_200_OK)
async def get_plan_timeline(
    user_id: str,
    plan_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
) -> dict[str, Any]:
    """Ideal, scheduled and actual load per day (default: last 28 days)."""
    validate_user_id(user_id)
    start, end = resolve_window(start, end, 28)
    return await InsightsService(session).get_insight_timeline(user_id, start, end, plan_id)


@get("/users/{user_id:str}/plans/{plan_id:str}/projection", status_code=HTTP_200_OK)
async def get_plan_projection(
    user_id: str,
    plan_id: str,
    session: AsyncSession,
) -> dict[str, Any]:
    """Week-by-week CTL projection from current fitness."""
    validate_user_id(user_id)
    return await InsightsService(session).get_projection(user_id, plan_id)


@post("/users/{user_id:str}/planned-activities", status_code=HTTP_201_CREATED)
async def schedule_activity(
    user_id: str,
    data: PlannedActivityCreate,
    session: AsyncSession,
    plan_id: Annotated[str | None, Parameter(query="plan_id")] = None,
) -> dict[str, Any]:
    validate_user_id(user_id)
    planned = await TrainingPlanService(session).schedule_activity(user_id, data, plan_id)
    return planned_activity_to_dict(planned)


@get("/users/{user_id:str}/planned-activities", status_code=HTTP_200_OK)
async def list_planned_activities(
    user_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
    plan_id: Annotated[str | None, Parameter(query="plan_id")] = None,
) -> list[dict[str, Any]]:
    """Planned sessions in a window (default: the next 14 days)."""
    validate_user_id(user_id)
    start = start or today_utc()
    end = end or start + timedelta(days=13)
    planned = await TrainingPlanService(session).list_planned_activities(
        user_id, start, end, plan_id
    )
    return [planned_activity_to_dict(p) for p in planned]


plans_router = Router(
    path="/",
    route_handlers=[
        create_plan,
        create_plan_from_goals,
        preview_plan,
        list_plans,
        get_active_plan,
        get_plan,
        activate_plan,
        deactivate_plan,
        get_plan_timeline,
        get_plan_projection,
        schedule_activity,
        list_planned_activities,
    ],
    tags=["Training Plans"],
)
