"""Training load, intensity and weekly summary endpoints."""

from dataclasses import asdict
from datetime import date
from typing import Annotated, Any

from litestar import Router, get
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.api.params import resolve_window, validate_user_id
from training_load_server.services.insights import InsightsService


@get("/users/{user_id:str}/training-load", status_code=HTTP_200_OK)
async def get_training_load(
    user_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
) -> dict[str, Any]:
    """Daily CTL/ATL/TSB series (default: last 90 days).

    The series is seeded from the 42 days before start, so a window that
    begins mid-season does not restart from zero fitness.
    """
    validate_user_id(user_id)
    start, end = resolve_window(start, end, 90)
    series = await InsightsService(session).get_load_series(user_id, start, end)
    return {
        "user_id": user_id,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "points": [asdict(p) for p in series],
    }


@get("/users/{user_id:str}/training-load/status", status_code=HTTP_200_OK)
async def get_training_status(
    user_id: str,
    session: AsyncSession,
    as_of: Annotated[date | None, Parameter(query="as_of")] = None,
) -> dict[str, Any]:
    """Current form, ramp rate, this week's progress and upcoming sessions."""
    validate_user_id(user_id)
    return await InsightsService(session).get_current_status(user_id, as_of)


@get("/users/{user_id:str}/intensity/distribution", status_code=HTTP_200_OK)
async def get_intensity_distribution(
    user_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
) -> dict[str, Any]:
    """TSS share per intensity zone (default: last 28 days)."""
    validate_user_id(user_id)
    start, end = resolve_window(start, end, 28)
    return await InsightsService(session).get_intensity_distribution(user_id, start, end)


@get("/users/{user_id:str}/intensity/trends", status_code=HTTP_200_OK)
async def get_intensity_trends(
    user_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
) -> dict[str, Any]:
    """Weekly intensity breakdown with a fitted trend (default: last 12 weeks)."""
    validate_user_id(user_id)
    start, end = resolve_window(start, end, 84)
    return await InsightsService(session).get_intensity_trends(user_id, start, end)


@get("/users/{user_id:str}/weekly-summary", status_code=HTTP_200_OK)
async def get_weekly_summary(
    user_id: str,
    session: AsyncSession,
    week_of: Annotated[date | None, Parameter(query="week_of")] = None,
) -> dict[str, Any]:
    validate_user_id(user_id)
    return await InsightsService(session).get_weekly_summary(user_id, week_of)


load_router = Router(
    path="/",
    route_handlers=[
        get_training_load,
        get_training_status,
        get_intensity_distribution,
        get_intensity_trends,
        get_weekly_summary,
    ],
    tags=["Training Load"],
)
