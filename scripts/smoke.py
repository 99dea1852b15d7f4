#!/usr/bin/env python3
"""End-to-end smoke check for a running training-load-server.

Creates a few activities, a baseline and a goal-driven plan for a
throwaway athlete, then reads back the derived insights.

Usage:
    export USER_ID="smoke-athlete"
    export BASE_URL="http://localhost:8000"

    python scripts/smoke.py
"""

import asyncio
import os
import sys
from datetime import UTC, datetime, timedelta

import httpx

# Configuration from environment
USER_ID = os.environ.get("USER_ID", "smoke-athlete")
BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000")
API_BASE = f"{BASE_URL}/api/v1/users/{USER_ID}"


async def check_health(client: httpx.AsyncClient) -> bool:
    r = await client.get(f"{BASE_URL}/health")
    if r.status_code != 200 or r.json().get("status") != "ok":
        print(f"  FAIL: Health check returned {r.status_code}")
        return False
    print(f"  OK: Server healthy, version {r.json().get('version')}")
    return True


async def check_activities(client: httpx.AsyncClient) -> bool:
    """Log a week of rides with device-reported TSS."""
    today = datetime.now(UTC).replace(hour=7, minute=0, second=0, microsecond=0)
    for days_ago in range(7, 0, -1):
        r = await client.post(
            f"{API_BASE}/activities",
            json={
                "name": f"Ride -{days_ago}d",
                "activity_category": "bike",
                "started_at": (today - timedelta(days=days_ago)).isoformat(),
                "duration_seconds": 3600,
                "metrics": {"training_stress_score": 60, "intensity_factor": 0.75},
            },
        )
        if r.status_code != 201:
            print(f"  FAIL: activity create returned {r.status_code}: {r.text}")
            return False

    r = await client.post(
        f"{API_BASE}/activities",
        json={"started_at": today.isoformat(), "duration_seconds": 0},
    )
    if r.status_code != 400:
        print(f"  FAIL: zero duration should return 400, got {r.status_code}")
        return False
    print("  OK: 7 activities stored, zero duration rejected")
    return True


async def check_baselines(client: httpx.AsyncClient) -> bool:
    r = await client.post(
        f"{API_BASE}/baselines",
        json={"metric_type": "ftp", "category": "bike", "value": 250},
    )
    if r.status_code != 201:
        print(f"  FAIL: baseline create returned {r.status_code}")
        return False

    r = await client.get(f"{API_BASE}/profile", params={"category": "bike"})
    if r.status_code != 200 or r.json()["profile"]["ftp"] != 250:
        print(f"  FAIL: profile did not pick up FTP ({r.status_code})")
        return False
    print(f"  OK: profile defaults used: {r.json()['profile']['defaults_used']}")
    return True


async def check_load(client: httpx.AsyncClient) -> bool:
    r = await client.get(f"{API_BASE}/training-load/status")
    if r.status_code != 200:
        print(f"  FAIL: training-load/status returned {r.status_code}")
        return False
    load = r.json()["training_load"]
    print(f"  OK: CTL {load['ctl']}, ATL {load['atl']}, form {load['form']}")
    return True


async def check_plans(client: httpx.AsyncClient) -> bool:
    goal_date = (datetime.now(UTC) + timedelta(weeks=16)).date().isoformat()
    body = {
        "goals": [
            {
                "name": "Autumn Gran Fondo",
                "target_date": goal_date,
                "targets": [
                    {
                        "target_type": "power_threshold",
                        "target_watts": 270,
                        "test_duration_s": 1200,
                        "activity_category": "bike",
                    }
                ],
            }
        ]
    }

    r = await client.post(f"{API_BASE}/plans/preview", json=body)
    if r.status_code != 200:
        print(f"  FAIL: plan preview returned {r.status_code}: {r.text}")
        return False
    assessment = r.json()["plan_assessment"]
    print(
        f"  OK: preview {assessment['feasibility_state']} / {assessment['safety_state']}"
    )

    r = await client.post(f"{API_BASE}/plans/from-goals", json=body)
    if r.status_code != 201:
        print(f"  FAIL: plan create returned {r.status_code}")
        return False
    plan_id = r.json()["id"]

    r = await client.get(f"{API_BASE}/plans/{plan_id}/projection")
    if r.status_code != 200:
        print(f"  FAIL: projection returned {r.status_code}")
        return False
    print(f"  OK: projection over {len(r.json()['weeks'])} weeks")
    return True


async def check_openapi(client: httpx.AsyncClient) -> bool:
    r = await client.get(f"{BASE_URL}/schema/openapi.json")
    if r.status_code != 200:
        print(f"  FAIL: OpenAPI schema returned {r.status_code}")
        return False
    print(f"  OK: OpenAPI schema - {len(r.json().get('paths', {}))} paths documented")
    return True


async def main() -> int:
    """Run all smoke checks."""
    print("=" * 60)
    print("Training Load Server - Smoke Check")
    print("=" * 60)
    print(f"Base URL: {BASE_URL}")
    print(f"User ID: {USER_ID}")
    print("=" * 60)

    checks = [
        ("Health Check", check_health),
        ("Activities", check_activities),
        ("Baselines", check_baselines),
        ("Training Load", check_load),
        ("Training Plans", check_plans),
        ("OpenAPI Schema", check_openapi),
    ]

    passed = 0
    failed = 0

    async with httpx.AsyncClient() as client:
        for name, check in checks:
            print(f"\n[{name}]")
            try:
                if await check(client):
                    passed += 1
                else:
                    failed += 1
            except httpx.HTTPError as e:
                print(f"  ERROR: {e}")
                failed += 1

    print("\n" + "=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
