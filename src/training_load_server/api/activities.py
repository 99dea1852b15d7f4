"""Activity endpoints."""

from datetime import date
from typing import Annotated, Any

from litestar import Router, get, post
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from training_load_server.api.params import resolve_window, validate_user_id
from training_load_server.models.activity import Activity
from training_load_server.schemas.requests import ActivityCreate, StreamUpload
from training_load_server.schemas.streams import ActivityStreams
from training_load_server.services.activity import ActivityService


def activity_to_dict(activity: Activity) -> dict[str, Any]:
    return {
        "id": activity.id,
        "user_id": activity.user_id,
        "name": activity.name,
        "activity_category": activity.activity_category,
        "started_at": activity.started_at.isoformat(),
        "finished_at": activity.finished_at.isoformat() if activity.finished_at else None,
        "duration_seconds": activity.duration_seconds,
        "distance_meters": activity.distance_meters,
        "metrics": activity.metrics or {},
    }


@post("/users/{user_id:str}/activities", status_code=HTTP_201_CREATED)
async def create_activity(
    user_id: str,
    data: ActivityCreate,
    session: AsyncSession,
) -> dict[str, Any]:
    """Store a completed activity.

    Zero or negative durations are rejected with 400. An optional metrics
    bag (e.g. device-reported TSS) is validated and stored as given.
    """
    validate_user_id(user_id)
    activity = await ActivityService(session).ingest(user_id, data)
    return activity_to_dict(activity)


@get("/users/{user_id:str}/activities", status_code=HTTP_200_OK)
async def list_activities(
    user_id: str,
    session: AsyncSession,
    start: Annotated[date | None, Parameter(query="start")] = None,
    end: Annotated[date | None, Parameter(query="end")] = None,
) -> list[dict[str, Any]]:
    """List activities in a date window (default: last 30 days)."""
    validate_user_id(user_id)
    start, end = resolve_window(start, end, 30)
    activities = await ActivityService(session).list_activities(user_id, start, end)
    return [activity_to_dict(a) for a in activities]


@get("/users/{user_id:str}/activities/{activity_id:str}", status_code=HTTP_200_OK)
async def get_activity(
    user_id: str,
    activity_id: str,
    session: AsyncSession,
) -> dict[str, Any]:
    """Get one activity with its metrics."""
    validate_user_id(user_id)
    activity = await ActivityService(session).get_activity(user_id, activity_id)
    return activity_to_dict(activity)


@post("/users/{user_id:str}/activities/{activity_id:str}/streams", status_code=HTTP_200_OK)
async def upload_streams(
    user_id: str,
    activity_id: str,
    data: StreamUpload,
    session: AsyncSession,
) -> dict[str, Any]:
    """Compute metrics from parsed stream samples.

    The derived metrics (TSS, IF, NP, zones, best efforts) are merged into
    the activity's metrics; keys not recomputed are kept.
    """
    validate_user_id(user_id)
    streams = ActivityStreams(samples=data.samples)
    activity = await ActivityService(session).compute_stream_metrics(user_id, activity_id, streams)
    return activity_to_dict(activity)


@post("/users/{user_id:str}/activities/{activity_id:str}/metrics", status_code=HTTP_200_OK)
async def merge_activity_metrics(
    user_id: str,
    activity_id: str,
    data: dict[str, Any],
    session: AsyncSession,
) -> dict[str, Any]:
    """Merge externally computed metrics into an activity."""
    validate_user_id(user_id)
    activity = await ActivityService(session).update_metrics(user_id, activity_id, data)
    return activity_to_dict(activity)


activities_router = Router(
    path="/",
    route_handlers=[
        create_activity,
        list_activities,
        get_activity,
        upload_streams,
        merge_activity_metrics,
    ],
    tags=["Activities"],
)
