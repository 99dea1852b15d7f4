"""Athlete baseline endpoints."""

from dataclasses import asdict
from datetime import UTC, date, datetime, time
from typing import Annotated, Any

from litestar import Router, get, post
from litestar.exceptions import ValidationException
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.api.params import validate_user_id
from training_load_server.core.errors import NotFoundError
from training_load_server.models.baseline import AthleteBaseline, BaselineCategory, BaselineMetric
from training_load_server.schemas.athlete import OnboardingInput
from training_load_server.schemas.requests import BaselineCreate
from training_load_server.services.baseline import BaselineService


def baseline_to_dict(entry: AthleteBaseline) -> dict[str, Any]:
    return {
        "id": entry.id,
        "metric_type": entry.metric_type,
        "category": entry.category,
        "value": entry.value,
        "unit": entry.unit,
        "source": entry.source,
        "recorded_at": entry.recorded_at.isoformat(),
    }


def _end_of_day(day: date | None) -> datetime | None:
    return datetime.combine(day, time.max, tzinfo=UTC) if day else None


@post("/users/{user_id:str}/baselines", status_code=HTTP_201_CREATED)
async def log_baseline(
    user_id: str,
    data: BaselineCreate,
    session: AsyncSession,
) -> dict[str, Any]:
    """Append a baseline value. Earlier values are kept as history."""
    validate_user_id(user_id)
    entry = await BaselineService(session).log_baseline(
        user_id,
        data.metric_type,
        data.value,
        category=data.category,
        unit=data.unit,
        source=data.source,
        recorded_at=data.recorded_at,
    )
    return baseline_to_dict(entry)


@get("/users/{user_id:str}/baselines", status_code=HTTP_200_OK)
async def list_baselines(
    user_id: str,
    session: AsyncSession,
    metric: Annotated[BaselineMetric | None, Parameter(query="metric")] = None,
) -> list[dict[str, Any]]:
    """Baseline history, newest first."""
    validate_user_id(user_id)
    entries = await BaselineService(session).list_baselines(user_id, metric)
    return [baseline_to_dict(e) for e in entries]


@get("/users/{user_id:str}/baselines/{metric:str}/current", status_code=HTTP_200_OK)
async def get_current_baseline(
    user_id: str,
    metric: str,
    session: AsyncSession,
    category: Annotated[BaselineCategory, Parameter(query="category")] = BaselineCategory.GENERAL,
    as_of: Annotated[date | None, Parameter(query="as_of")] = None,
) -> dict[str, Any]:
    """Value in effect on a date (default: now)."""
    validate_user_id(user_id)
    try:
        metric_type = BaselineMetric(metric)
    except ValueError as exc:
        raise ValidationException(f"Unknown baseline metric: {metric}") from exc

    entry = await BaselineService(session).get_baseline_as_of(
        user_id, metric_type, category, _end_of_day(as_of)
    )
    if entry is None:
        raise NotFoundError("No baseline recorded", {"metric": metric})
    return baseline_to_dict(entry)


@get("/users/{user_id:str}/profile", status_code=HTTP_200_OK)
async def get_profile(
    user_id: str,
    session: AsyncSession,
    category: Annotated[str, Parameter(query="category")] = "general",
    as_of: Annotated[date | None, Parameter(query="as_of")] = None,
) -> dict[str, Any]:
    """Resolved profile for a sport, including which values are defaults."""
    validate_user_id(user_id)
    service = BaselineService(session)
    profile = await service.resolve_profile(user_id, category, _end_of_day(as_of))
    curves = {}
    if category in ("bike", "run", "swim"):
        curves[category] = asdict(service.estimator.derive_effort_curve(profile, category))
    return {"profile": profile.model_dump(), "effort_curves": curves}


@post("/users/{user_id:str}/onboarding", status_code=HTTP_201_CREATED)
async def onboard(
    user_id: str,
    data: OnboardingInput,
    session: AsyncSession,
) -> dict[str, Any]:
    """Estimate and record starting baselines from onboarding answers."""
    validate_user_id(user_id)
    entries = await BaselineService(session).onboard(user_id, data)
    return {"user_id": user_id, "baselines": [baseline_to_dict(e) for e in entries]}


baselines_router = Router(
    path="/",
    route_handlers=[
        log_baseline,
        list_baselines,
        get_current_baseline,
        get_profile,
        onboard,
    ],
    tags=["Baselines"],
)
