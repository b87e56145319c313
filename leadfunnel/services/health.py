"""
Dependency health probes
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from leadfunnel.core.database import ping
from leadfunnel.services.notifications import Integrations

logger = structlog.get_logger(__name__)

CRITICAL_SERVICES = ("database", "email")
CONNECTED = "connected"
DISCONNECTED = "disconnected"


async def check_database(session_maker: async_sessionmaker, timeout: float = 5.0) -> bool:
    try:
        return await asyncio.wait_for(ping(session_maker), timeout=timeout)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def _channel_status(channel) -> str:
    # Unconfigured integrations are optional and count as healthy
    if not channel.is_enabled:
        return CONNECTED
    result = await channel.test_connection()
    return CONNECTED if result.get("success") else DISCONNECTED


async def check_health(
    session_maker: async_sessionmaker,
    integrations: Integrations,
    version: str,
    timeout: float = 5.0,
) -> Tuple[bool, Dict[str, Any]]:
    """Probe every dependency concurrently"""
    database_ok, email, ledger, hubspot, slack = await asyncio.gather(
        check_database(session_maker, timeout),
        _channel_status(integrations.email),
        _channel_status(integrations.ledger),
        _channel_status(integrations.hubspot),
        _channel_status(integrations.slack),
    )
    services = {
        "database": CONNECTED if database_ok else DISCONNECTED,
        "email": email,
        "google_sheets": ledger,
        "hubspot": hubspot,
        "slack": slack,
    }
    healthy = all(services[name] == CONNECTED for name in CRITICAL_SERVICES)
    if not healthy:
        logger.warning(f"Health check degraded: {services}")

    return healthy, {
        "status": "healthy" if healthy else "unhealthy",
        "services": services,
        "timestamp": datetime.utcnow().isoformat(),
        "version": version,
    }
