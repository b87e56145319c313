"""
Tests for team rotations: overlap rules, updates and schedule suggestions
"""

from datetime import date, timedelta
import uuid

import pytest

from leadfunnel.models import RotationType, User, UserRole
from leadfunnel.services.rotations import compute_schedule

ROTATION_URL = "/api/client/team/rotation"


def rotation_body(user, start, end, rotation_type="30_days") -> dict:
    return {
        "user_id": str(user.id),
        "rotation_type": rotation_type,
        "start_date": start,
        "end_date": end,
    }


@pytest.fixture
def create_rotation(client, manager_a, auth_headers):
    async def _create(user, start, end, rotation_type="30_days"):
        return await client.post(
            ROTATION_URL,
            headers=auth_headers(manager_a),
            json=rotation_body(user, start, end, rotation_type),
        )
    return _create


async def test_overlapping_rotation_is_rejected(create_rotation, agent_a):
    first = await create_rotation(agent_a, "2026-01-01", "2026-01-30")
    assert first.status_code == 201

    overlapping = await create_rotation(agent_a, "2026-01-15", "2026-02-14")

    assert overlapping.status_code == 409
    assert overlapping.json()["details"]["conflicting_rotation_id"] == first.json()["data"]["id"]


async def test_rotation_sharing_the_last_day_overlaps(create_rotation, agent_a):
    await create_rotation(agent_a, "2026-01-01", "2026-01-30")

    response = await create_rotation(agent_a, "2026-01-30", "2026-02-28")

    assert response.status_code == 409


async def test_back_to_back_rotations_are_allowed(create_rotation, agent_a):
    await create_rotation(agent_a, "2026-01-01", "2026-01-30")

    response = await create_rotation(agent_a, "2026-01-31", "2026-03-01")

    assert response.status_code == 201


async def test_other_type_or_user_does_not_conflict(create_rotation, agent_a, make_user, tenant_a):
    other_agent = await make_user(tenant_a, UserRole.AGENT)
    await create_rotation(agent_a, "2026-01-01", "2026-01-30")

    other_type = await create_rotation(agent_a, "2026-01-10", "2026-04-10", rotation_type="90_days")
    other_user = await create_rotation(other_agent, "2026-01-10", "2026-02-09")

    assert other_type.status_code == 201
    assert other_user.status_code == 201


async def test_end_must_follow_start(create_rotation, agent_a):
    response = await create_rotation(agent_a, "2026-01-30", "2026-01-30")

    assert response.status_code == 400
    assert response.json()["errors"]["end_date"] == ["end_date must be after start_date"]


async def test_user_of_other_tenant_is_not_found(create_rotation, admin_b):
    response = await create_rotation(admin_b, "2026-01-01", "2026-01-30")

    assert response.status_code == 404


async def test_agent_cannot_manage_rotations(client, agent_a, auth_headers):
    response = await client.post(
        ROTATION_URL,
        headers=auth_headers(agent_a),
        json=rotation_body(agent_a, "2026-01-01", "2026-01-30"),
    )

    assert response.status_code == 403


async def test_reactivation_rechecks_overlap(client, create_rotation, manager_a, agent_a, auth_headers):
    headers = auth_headers(manager_a)
    first = (await create_rotation(agent_a, "2026-01-01", "2026-01-30")).json()["data"]

    deactivated = await client.patch(ROTATION_URL, headers=headers, json={"id": first["id"], "is_active": False})
    assert deactivated.status_code == 200
    assert deactivated.json()["data"]["is_active"] is False

    replacement = await create_rotation(agent_a, "2026-01-15", "2026-02-14")
    assert replacement.status_code == 201

    reactivated = await client.patch(ROTATION_URL, headers=headers, json={"id": first["id"], "is_active": True})
    assert reactivated.status_code == 409


async def test_extending_into_next_rotation_conflicts(client, create_rotation, manager_a, agent_a, auth_headers):
    headers = auth_headers(manager_a)
    first = (await create_rotation(agent_a, "2026-01-01", "2026-01-30")).json()["data"]
    await create_rotation(agent_a, "2026-02-10", "2026-03-11")

    shortened = await client.patch(ROTATION_URL, headers=headers, json={"id": first["id"], "end_date": "2026-01-20"})
    assert shortened.status_code == 200
    assert shortened.json()["data"]["end_date"] == "2026-01-20"

    extended = await client.patch(ROTATION_URL, headers=headers, json={"id": first["id"], "end_date": "2026-02-15"})
    assert extended.status_code == 409

    inverted = await client.patch(ROTATION_URL, headers=headers, json={"id": first["id"], "end_date": "2025-12-01"})
    assert inverted.status_code == 400


async def test_update_of_foreign_rotation_is_not_found(client, create_rotation, agent_a, admin_b, auth_headers):
    rotation = (await create_rotation(agent_a, "2026-01-01", "2026-01-30")).json()["data"]

    response = await client.patch(
        ROTATION_URL, headers=auth_headers(admin_b), json={"id": rotation["id"], "is_active": False}
    )

    assert response.status_code == 404


async def test_listing_includes_stats_and_own_rotation(client, create_rotation, agent_a, auth_headers):
    today = date.today()
    await create_rotation(agent_a, (today - timedelta(days=25)).isoformat(), (today + timedelta(days=5)).isoformat())
    await create_rotation(
        agent_a,
        (today + timedelta(days=10)).isoformat(),
        (today + timedelta(days=100)).isoformat(),
        rotation_type="90_days",
    )

    response = await client.get(ROTATION_URL, headers=auth_headers(agent_a))

    assert response.status_code == 200
    body = response.json()
    assert body["stats"] == {
        "total": 2,
        "active": 2,
        "by_type": {"30_days": 1, "90_days": 1},
        "ending_soon": 1,
    }
    assert body["current_rotation"]["rotation_type"] == "30_days"
    assert body["next_rotation"]["rotation_type"] == "90_days"
    assert body["rotations"][0]["user"]["email"] == agent_a.email
    assert body["rotations"][0]["performance"] == {
        "leads": 0, "closed": 0, "conversion_rate": 0.0, "revenue": 0,
    }


async def test_schedule_staggers_agents(client, manager_a, make_user, tenant_a, auth_headers):
    await make_user(tenant_a, UserRole.AGENT, email="a1@alfa.pl")
    await make_user(tenant_a, UserRole.AGENT, email="a2@alfa.pl")

    response = await client.put(ROTATION_URL, params={"type": "30_days"}, headers=auth_headers(manager_a))

    assert response.status_code == 200
    body = response.json()
    assert body["total_agents"] == 2
    assert body["rotation_type"] == "30_days"
    assert sorted(item["days_until_start"] for item in body["schedule"]) == [0, 7]


async def test_schedule_without_agents_is_not_found(client, manager_a, auth_headers):
    response = await client.put(ROTATION_URL, params={"type": "90_days"}, headers=auth_headers(manager_a))

    assert response.status_code == 404
    assert response.json()["error"] == "No agents found"


class TestComputeSchedule:

    def test_agents_with_rotations_continue_after_them(self):
        today = date(2026, 1, 1)
        agents = [User(id=uuid.uuid4(), email=f"a{i}@alfa.pl", full_name=f"Agent {i}") for i in range(3)]
        latest_end = {agents[1].id: date(2026, 2, 10)}

        schedule = compute_schedule(agents, latest_end, RotationType.THIRTY_DAYS, today)

        assert [(item["start_date"], item["end_date"]) for item in schedule] == [
            ("2026-01-01", "2026-01-31"),
            ("2026-02-11", "2026-03-13"),
            ("2026-01-15", "2026-02-14"),
        ]
        assert [item["days_until_start"] for item in schedule] == [0, 41, 14]

    def test_ninety_day_length(self):
        agent = User(id=uuid.uuid4(), email="a@alfa.pl")

        [item] = compute_schedule([agent], {}, RotationType.NINETY_DAYS, date(2026, 1, 1))

        assert item["end_date"] == "2026-04-01"
