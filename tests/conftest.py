"""
Test configuration for pytest
"""

import os

# Test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
for name in ("EMAIL_HOST", "SLACK_WEBHOOK_URL", "HUBSPOT_ACCESS_TOKEN", "GOOGLE_SHEETS_ID"):
    os.environ.pop(name, None)

from datetime import timedelta
from itertools import count
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from leadfunnel.core.auth import create_session_token, hash_password
from leadfunnel.core.config import get_settings
from leadfunnel.core.database import create_engine_from_url, create_session_maker, init_db
from leadfunnel.main import create_app
from leadfunnel.models import DEFAULT_TENANT_SETTINGS, Lead, Tenant, User, UserRole
from leadfunnel.services.notifications import Integrations


class RecordingChannel:
    """Stand-in for an outbound integration that records every call"""

    def __init__(self, enabled: bool = True, fail: bool = False, healthy: bool = True):
        self.is_enabled = enabled
        self.fail = fail
        self.healthy = healthy
        self.calls = []

    async def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise RuntimeError(f"{name} unavailable")

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    async def send_lead_notification(self, lead, recipients):
        await self._record("send_lead_notification", lead, recipients)

    async def send_lead_confirmation(self, lead):
        await self._record("send_lead_confirmation", lead)

    async def send_lead_alert(self, lead):
        await self._record("send_lead_alert", lead)

    async def send_text(self, text):
        await self._record("send_text", text)

    async def create_contact(self, lead):
        await self._record("create_contact", lead)

    async def append_lead(self, lead):
        await self._record("append_lead", lead)

    async def test_connection(self):
        return {"success": self.healthy, "enabled": self.is_enabled}


def build_integrations(fail: bool = False, ledger_enabled: bool = False) -> Integrations:
    return Integrations(
        email=RecordingChannel(fail=fail),
        slack=RecordingChannel(fail=fail),
        hubspot=RecordingChannel(fail=fail),
        ledger=RecordingChannel(enabled=ledger_enabled, fail=fail),
        team_recipients=["sprzedaz@bezhandlowca.pl"],
    )


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database for each test"""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def integrations():
    return build_integrations()


@pytest.fixture
def app(session_maker, integrations):
    return create_app(session_maker=session_maker, integrations=integrations)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await app.state.event_bus.drain()


@pytest.fixture
def make_tenant(session_maker):
    async def _make(domain: str = "acme.pl", name: Optional[str] = None, **fields) -> Tenant:
        tenant = Tenant(name=name or domain, domain=domain, settings=dict(DEFAULT_TENANT_SETTINGS), **fields)
        async with session_maker() as session:
            session.add(tenant)
            await session.commit()
            await session.refresh(tenant)
        return tenant
    return _make


@pytest.fixture
def make_user(session_maker):
    sequence = count(1)

    async def _make(
        tenant: Optional[Tenant],
        role: UserRole = UserRole.ADMIN,
        email: Optional[str] = None,
        password: Optional[str] = None,
        **fields,
    ) -> User:
        number = next(sequence)
        user = User(
            client_id=tenant.id if tenant else None,
            email=email or f"user{number}@example.com",
            full_name=fields.pop("full_name", f"User {number}"),
            role=role,
            password_hash=hash_password(password) if password else None,
            **fields,
        )
        async with session_maker() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user
    return _make


@pytest.fixture
def make_lead(session_maker):
    sequence = count(1)

    async def _make(tenant: Tenant, **fields) -> Lead:
        number = next(sequence)
        values = {
            "first_name": "Jan",
            "last_name": "Kowalski",
            "company": f"Firma {number}",
            "email": f"lead{number}@example.com",
        }
        values.update(fields)
        lead = Lead(client_id=tenant.id, **values)
        lead.apply_default_probability()
        async with session_maker() as session:
            session.add(lead)
            await session.commit()
            await session.refresh(lead)
        return lead
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User, expires_delta: Optional[timedelta] = None) -> dict:
        return {"Authorization": f"Bearer {create_session_token(user.id, expires_delta)}"}
    return _headers


@pytest.fixture
async def default_tenant(make_tenant, settings):
    return await make_tenant(settings.DEFAULT_TENANT_DOMAIN, name=settings.DEFAULT_TENANT_NAME)


@pytest.fixture
async def tenant_a(make_tenant):
    return await make_tenant("alfa.pl", name="Alfa")


@pytest.fixture
async def tenant_b(make_tenant):
    return await make_tenant("beta.pl", name="Beta")


@pytest.fixture
async def admin_a(make_user, tenant_a):
    return await make_user(tenant_a, UserRole.ADMIN, email="admin@alfa.pl")


@pytest.fixture
async def manager_a(make_user, tenant_a):
    return await make_user(tenant_a, UserRole.MANAGER, email="manager@alfa.pl")


@pytest.fixture
async def agent_a(make_user, tenant_a):
    return await make_user(tenant_a, UserRole.AGENT, email="agent@alfa.pl")


@pytest.fixture
async def admin_b(make_user, tenant_b):
    return await make_user(tenant_b, UserRole.ADMIN, email="admin@beta.pl")
