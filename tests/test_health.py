"""
Tests for the health endpoints
"""

from httpx import ASGITransport, AsyncClient

from leadfunnel.core.database import create_engine_from_url, create_session_maker
from leadfunnel.main import create_app

from tests.conftest import build_integrations


async def test_healthy_when_all_dependencies_respond(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {
        "database": "connected",
        "email": "connected",
        "google_sheets": "connected",
        "hubspot": "connected",
        "slack": "connected",
    }
    assert body["version"]
    assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"


async def test_optional_integration_failure_keeps_service_healthy(client, integrations):
    integrations.slack.healthy = False

    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["services"]["slack"] == "disconnected"


async def test_email_failure_is_unhealthy(client, integrations):
    integrations.email.healthy = False

    response = await client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


async def test_head_probe(client):
    response = await client.head("/api/health")

    assert response.status_code == 200


async def test_database_outage_is_reported(tmp_path):
    broken = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    app = create_app(session_maker=create_session_maker(broken), integrations=build_integrations())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        full = await client.get("/api/health")
        probe = await client.head("/api/health")

    assert full.status_code == 503
    assert full.json()["services"]["database"] == "disconnected"
    assert probe.status_code == 503
    await broken.dispose()
