"""
One-time bootstrap of the default tenant

Public form submissions are stored under the tenant whose domain matches
DEFAULT_TENANT_DOMAIN. Run once after migrations:

    python -m leadfunnel.scripts.create_default_tenant [--admin-password PASSWORD]

Safe to re-run: existing records are left untouched.
"""

import argparse
import asyncio
import secrets
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.auth import hash_password
from leadfunnel.core.config import Settings, get_settings
from leadfunnel.core.database import get_session_maker
from leadfunnel.core.logging_config import configure_logging
from leadfunnel.models import DEFAULT_TENANT_SETTINGS, Tenant, User, UserRole

logger = structlog.get_logger(__name__)


async def ensure_default_tenant(
    session: AsyncSession, settings: Settings, admin_password: Optional[str] = None
) -> dict:
    """Create the default tenant and its admin user when missing"""
    created = {"tenant": False, "admin": False, "admin_password": None}

    tenant = (await session.exec(
        select(Tenant).where(Tenant.domain == settings.DEFAULT_TENANT_DOMAIN)
    )).first()
    if tenant is None:
        tenant = Tenant(
            name=settings.DEFAULT_TENANT_NAME,
            domain=settings.DEFAULT_TENANT_DOMAIN,
            settings=dict(DEFAULT_TENANT_SETTINGS),
            subscription_plan="enterprise",
        )
        session.add(tenant)
        await session.flush()
        created["tenant"] = True
        logger.info(f"Created default tenant {tenant.domain} ({tenant.id})")
    else:
        logger.info(f"Default tenant already exists: {tenant.id}")

    admin = (await session.exec(
        select(User).where(User.client_id == tenant.id, User.email == settings.DEFAULT_ADMIN_EMAIL)
    )).first()
    if admin is None:
        password = admin_password or secrets.token_urlsafe(12)
        admin = User(
            client_id=tenant.id,
            email=settings.DEFAULT_ADMIN_EMAIL,
            full_name="Administrator",
            role=UserRole.ADMIN,
            password_hash=hash_password(password),
        )
        session.add(admin)
        created["admin"] = True
        if admin_password is None:
            created["admin_password"] = password
        logger.info(f"Created admin user {admin.email}")

    await session.commit()
    return created


async def run(admin_password: Optional[str]) -> dict:
    settings = get_settings()
    async with get_session_maker()() as session:
        return await ensure_default_tenant(session, settings, admin_password)


def main():
    """Main entry point for tenant bootstrap"""
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--admin-password", help="Password for the admin user (generated when omitted)")
    args = parser.parse_args()

    configure_logging()
    logger.info("Starting default tenant bootstrap")

    try:
        results = asyncio.run(run(args.admin_password))
    except SQLAlchemyError as e:
        logger.error(f"Fatal error in tenant bootstrap: {e}")
        sys.exit(1)

    logger.info(f"Results: tenant_created={results['tenant']} admin_created={results['admin']}")
    if results["admin_password"]:
        # Shown once; not stored anywhere in plain text
        print(f"Generated admin password: {results['admin_password']}")


if __name__ == "__main__":
    main()
