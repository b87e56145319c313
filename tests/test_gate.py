"""
Tests for the request authorization gate and tenant isolation
"""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from leadfunnel.core.database import create_engine_from_url, create_session_maker
from leadfunnel.core.tenant_middleware import (
    SESSION_REFRESH_HEADER,
    RequestClass,
    classify_path,
    path_matches,
)
from leadfunnel.main import create_app
from leadfunnel.models import UserRole

from tests.conftest import build_integrations


class TestClassifyPath:
    """Path classification"""

    @pytest.mark.parametrize("path", [
        "/",
        "/client/login",
        "/api/leads",
        "/api/leads/qualify",
        "/api/health",
        "/api/auth/login",
        "/docs",
        "/openapi.json",
    ])
    def test_public_paths(self, path):
        assert classify_path(path) is RequestClass.PUBLIC

    @pytest.mark.parametrize("path", [
        "/api/client/leads",
        "/api/client/leads/123/activities",
        "/api/client/team/rotation",
        "/client",
        "/client/dashboard",
    ])
    def test_tenant_scoped_paths(self, path):
        assert classify_path(path) is RequestClass.TENANT_SCOPED

    @pytest.mark.parametrize("path", ["/api/super-admin/stats", "/static/app.js", "/clients"])
    def test_other_paths_pass_through(self, path):
        assert classify_path(path) is RequestClass.PASSTHROUGH

    def test_prefix_matches_whole_segments(self):
        assert path_matches("/api/client/leads", "/api/client")
        assert not path_matches("/api/clientele", "/api/client")
        assert not path_matches("/api/leadsx", "/api/leads")


async def test_api_request_without_session_is_unauthorized(client):
    response = await client.get("/api/client/leads")

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


async def test_invalid_token_is_unauthorized(client):
    response = await client.get("/api/client/leads", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


async def test_browser_request_without_session_redirects_to_login(client):
    response = await client.get("/client/dashboard")

    assert response.status_code == 303
    assert response.headers["location"] == "/client/login"


async def test_user_without_tenant_is_forbidden(client, make_user, auth_headers):
    platform_admin = await make_user(None, UserRole.ADMIN)

    response = await client.get("/api/client/leads", headers=auth_headers(platform_admin))

    assert response.status_code == 403
    assert response.json()["error"] == "No client associated with user"


async def test_browser_user_without_tenant_redirects_with_error(client, make_user, auth_headers):
    platform_admin = await make_user(None, UserRole.ADMIN)

    response = await client.get("/client/dashboard", headers=auth_headers(platform_admin))

    assert response.status_code == 303
    assert response.headers["location"] == "/client/login?error=no_tenant"


async def test_disabled_user_is_forbidden(client, make_user, tenant_a, auth_headers):
    user = await make_user(tenant_a, UserRole.ADMIN, is_active=False)

    response = await client.get("/api/client/leads", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"] == "User account is disabled"


async def test_tenant_header_cannot_override_session(
    client, admin_a, tenant_a, tenant_b, make_lead, auth_headers
):
    await make_lead(tenant_a, company="Alfa Lead")
    await make_lead(tenant_b, company="Beta Lead")

    headers = auth_headers(admin_a)
    headers["X-Client-ID"] = str(tenant_b.id)
    response = await client.get("/api/client/leads", headers=headers)

    assert response.status_code == 200
    companies = [lead["company"] for lead in response.json()["data"]]
    assert companies == ["Alfa Lead"]


async def test_cross_tenant_lead_is_not_found(client, admin_a, tenant_b, make_lead, auth_headers):
    foreign = await make_lead(tenant_b)

    response = await client.get(f"/api/client/leads/{foreign.id}", headers=auth_headers(admin_a))

    assert response.status_code == 404
    assert response.json()["error"] == "Lead not found"


async def test_store_failure_fails_closed(tmp_path, admin_a, auth_headers):
    broken = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    app = create_app(session_maker=create_session_maker(broken), integrations=build_integrations())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/client/leads", headers=auth_headers(admin_a))

    assert response.status_code == 503
    await broken.dispose()


async def test_session_close_to_expiry_is_refreshed(client, admin_a, auth_headers):
    response = await client.get(
        "/api/client/leads", headers=auth_headers(admin_a, expires_delta=timedelta(minutes=5))
    )

    assert response.status_code == 200
    assert response.headers.get(SESSION_REFRESH_HEADER)


async def test_fresh_session_is_not_refreshed(client, admin_a, auth_headers):
    response = await client.get("/api/client/leads", headers=auth_headers(admin_a))

    assert response.status_code == 200
    assert SESSION_REFRESH_HEADER not in response.headers
