"""
Unit and API tests for session tokens, login and permissions
"""

from datetime import datetime, timedelta
import uuid

from jose import jwt

from leadfunnel.core.auth import (
    create_session_token,
    decode_session_token,
    hash_password,
    verify_password,
    verify_session_token,
)
from leadfunnel.core.config import get_settings
from leadfunnel.core.permissions import Permission, get_permissions_for_role
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import UserRole

settings = get_settings()


def test_create_session_token():
    """Session tokens carry only the user id"""
    user_id = uuid.uuid4()

    token = create_session_token(user_id, expires_delta=timedelta(hours=1))

    payload = decode_session_token(token)
    assert payload["sub"] == str(user_id)
    assert payload["typ"] == "session"
    assert "tenant_id" not in payload
    assert "role" not in payload


def test_verify_session_token():
    user_id = uuid.uuid4()

    session = verify_session_token(create_session_token(user_id))

    assert session.user_id == user_id
    assert not session.needs_refresh()


def test_expired_token_is_rejected():
    token = create_session_token(uuid.uuid4(), expires_delta=timedelta(seconds=-10))

    assert verify_session_token(token) is None


def test_token_with_wrong_signature_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "typ": "session", "exp": datetime.utcnow() + timedelta(hours=1)},
        "another-secret",
        algorithm=settings.JWT_ALGORITHM,
    )

    assert verify_session_token(token) is None


def test_token_of_other_type_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "typ": "refresh", "exp": datetime.utcnow() + timedelta(hours=1)},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )

    assert decode_session_token(token) is None


def test_password_hashing():
    password_hash = hash_password("tajne-haslo")

    assert password_hash != "tajne-haslo"
    assert verify_password("tajne-haslo", password_hash)
    assert not verify_password("inne-haslo", password_hash)
    assert not verify_password("tajne-haslo", None)


def test_role_permissions():
    assert get_permissions_for_role("admin") == set(Permission)
    assert Permission.ROTATION_MANAGE in get_permissions_for_role("manager")
    assert Permission.LEAD_ASSIGN not in get_permissions_for_role("agent")
    assert Permission.REPORTS_VIEW not in get_permissions_for_role("agent")
    assert get_permissions_for_role("unknown") == set()


def test_trust_context_permissions():
    trust = TrustContext(tenant_id=uuid.uuid4(), user_id=uuid.uuid4(), role="agent")

    assert trust.can(Permission.LEAD_UPDATE)
    assert not trust.can(Permission.LEAD_IMPORT)


async def test_login_sets_session_cookie(client, make_user, tenant_a):
    user = await make_user(tenant_a, UserRole.MANAGER, email="jan@alfa.pl", password="tajne-haslo")

    response = await client.post("/api/auth/login", json={"email": "Jan@Alfa.pl", "password": "tajne-haslo"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user_id"] == str(user.id)
    assert data["client_id"] == str(tenant_a.id)
    assert data["role"] == "manager"
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == data["access_token"]

    client.cookies.clear()
    me = await client.get(
        "/api/client/me",
        headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}={data['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["data"]["client"]["domain"] == "alfa.pl"
    assert Permission.ROTATION_MANAGE.value in me.json()["data"]["permissions"]


async def test_login_with_wrong_password(client, make_user, tenant_a):
    await make_user(tenant_a, email="jan@alfa.pl", password="tajne-haslo")

    response = await client.post("/api/auth/login", json={"email": "jan@alfa.pl", "password": "zle"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


async def test_login_of_disabled_user(client, make_user, tenant_a):
    await make_user(tenant_a, email="jan@alfa.pl", password="tajne-haslo", is_active=False)

    response = await client.post("/api/auth/login", json={"email": "jan@alfa.pl", "password": "tajne-haslo"})

    assert response.status_code == 403


async def test_login_with_email_in_two_tenants_needs_domain(client, make_user, tenant_a, tenant_b):
    await make_user(tenant_a, email="jan@example.com", password="haslo-alfa")
    user_b = await make_user(tenant_b, email="jan@example.com", password="haslo-beta")

    ambiguous = await client.post("/api/auth/login", json={"email": "jan@example.com", "password": "haslo-beta"})
    assert ambiguous.status_code == 400
    assert "tenant_domain" in ambiguous.json()["errors"]

    scoped = await client.post("/api/auth/login", json={
        "email": "jan@example.com", "password": "haslo-beta", "tenant_domain": "beta.pl",
    })
    assert scoped.status_code == 200
    assert scoped.json()["data"]["user_id"] == str(user_b.id)


async def test_logout_clears_cookie(client):
    response = await client.post("/api/auth/logout")

    assert response.status_code == 200
    assert settings.SESSION_COOKIE_NAME in response.headers["set-cookie"]
