"""HTTP API tests."""

from datetime import UTC, datetime, timedelta

import pytest
from litestar.testing import AsyncTestClient

from training_load_server.app import create_app

USER = "athlete-001"
BASE = f"/api/v1/users/{USER}"


@pytest.fixture
async def client(async_engine):
    """Test client bound to the in-memory database."""
    app = create_app(engine_instance=async_engine)
    async with AsyncTestClient(app=app) as test_client:
        yield test_client


def goal_body(weeks_out: int = 12) -> dict:
    target = datetime.now(UTC).date() + timedelta(weeks=weeks_out)
    return {
        "goals": [
            {
                "name": "Autumn TT",
                "target_date": target.isoformat(),
                "targets": [
                    {
                        "target_type": "power_threshold",
                        "target_watts": 280,
                        "test_duration_s": 1200,
                        "activity_category": "bike",
                    }
                ],
            }
        ]
    }


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncTestClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestActivityEndpoints:
    """Tests for activity ingestion endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_fetch_activity(self, client: AsyncTestClient):
        response = await client.post(
            f"{BASE}/activities",
            json={
                "name": "Morning ride",
                "activity_category": "bike",
                "started_at": "2026-03-02T07:00:00Z",
                "duration_seconds": 3600,
                "metrics": {"training_stress_score": 65, "intensity_factor": 0.8},
            },
        )
        assert response.status_code == 201
        created = response.json()
        assert created["metrics"]["training_stress_score"] == 65

        response = await client.get(f"{BASE}/activities/{created['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "Morning ride"

    @pytest.mark.asyncio
    async def test_zero_duration_rejected(self, client: AsyncTestClient):
        response = await client.post(
            f"{BASE}/activities",
            json={"started_at": "2026-03-02T07:00:00Z", "duration_seconds": 0},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    @pytest.mark.asyncio
    async def test_invalid_user_id_rejected(self, client: AsyncTestClient):
        response = await client.get("/api/v1/users/bad.user/activities")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_activity(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/activities/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_activities_are_user_scoped(self, client: AsyncTestClient):
        response = await client.post(
            f"{BASE}/activities",
            json={"started_at": "2026-03-02T07:00:00Z", "duration_seconds": 1800},
        )
        activity_id = response.json()["id"]

        response = await client.get(f"/api/v1/users/athlete-002/activities/{activity_id}")
        assert response.status_code == 404


class TestLoadEndpoints:
    @pytest.mark.asyncio
    async def test_training_load_default_window(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/training-load")
        assert response.status_code == 200
        assert len(response.json()["points"]) == 90

    @pytest.mark.asyncio
    async def test_training_load_reversed_window(self, client: AsyncTestClient):
        response = await client.get(
            f"{BASE}/training-load", params={"start": "2026-03-10", "end": "2026-03-01"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_weekly_summary_without_plan(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/weekly-summary", params={"week_of": "2026-03-04"})
        assert response.status_code == 200
        body = response.json()
        assert body["week_start"] == "2026-03-02"
        assert body["status"] == "no_plan"


class TestBaselineEndpoints:
    @pytest.mark.asyncio
    async def test_current_baseline_missing(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/baselines/ftp/current")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_log_then_read_baseline(self, client: AsyncTestClient):
        response = await client.post(
            f"{BASE}/baselines",
            json={"metric_type": "ftp", "category": "bike", "value": 255},
        )
        assert response.status_code == 201

        response = await client.get(f"{BASE}/baselines/ftp/current", params={"category": "bike"})
        assert response.status_code == 200
        assert response.json()["value"] == 255

    @pytest.mark.asyncio
    async def test_profile_falls_back_to_defaults(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/profile", params={"category": "bike"})
        assert response.status_code == 200
        assert response.json()["profile"]["ftp"] == 200


class TestPlanEndpoints:
    """Tests for training plan endpoints."""

    @pytest.mark.asyncio
    async def test_invalid_structure_is_422(self, client: AsyncTestClient):
        response = await client.post(
            f"{BASE}/plans",
            json={
                "name": "Broken",
                "structure": {"plan_type": "maintenance", "id": "x", "name": "Broken"},
            },
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation"
        assert body["details"]["issues"]

    @pytest.mark.asyncio
    async def test_preview_does_not_store(self, client: AsyncTestClient):
        response = await client.post(f"{BASE}/plans/preview", json=goal_body())
        assert response.status_code == 200
        assert response.json()["plan"]["plan_type"] == "periodized"

        response = await client.get(f"{BASE}/plans")
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_from_goals_then_projection(self, client: AsyncTestClient):
        response = await client.post(f"{BASE}/plans/from-goals", json=goal_body())
        assert response.status_code == 201
        plan = response.json()
        assert plan["is_active"]

        response = await client.get(f"{BASE}/plans/active")
        assert response.json()["id"] == plan["id"]

        response = await client.get(f"{BASE}/plans/{plan['id']}/projection")
        assert response.status_code == 200
        assert response.json()["weeks"]

        response = await client.get(f"{BASE}/plans/{plan['id']}/timeline")
        assert response.status_code == 200
        assert len(response.json()["points"]) == 28

    @pytest.mark.asyncio
    async def test_no_active_plan(self, client: AsyncTestClient):
        response = await client.get(f"{BASE}/plans/active")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_schedule_planned_activity(self, client: AsyncTestClient):
        tomorrow = datetime.now(UTC).date() + timedelta(days=1)
        response = await client.post(
            f"{BASE}/planned-activities",
            json={
                "scheduled_date": tomorrow.isoformat(),
                "name": "Easy spin",
                "estimated_duration_seconds": 3600,
                "effort_level": "easy",
            },
        )
        assert response.status_code == 201
        assert response.json()["estimated_tss"] == 42.0

        response = await client.get(f"{BASE}/planned-activities")
        assert [p["name"] for p in response.json()] == ["Easy spin"]
