"""
Authentication and authorization dependencies for FastAPI
"""

from fastapi import Depends, Request, Response
import math
import structlog
import time

from leadfunnel.core.auth import resolve_session
from leadfunnel.core.database import get_session
from leadfunnel.core.errors import AuthenticationError, AuthorizationError, RateLimitError
from leadfunnel.core.events import EventBus
from leadfunnel.core.logging_config import generate_tracking_id
from leadfunnel.core.rate_limit import RateLimiter, RateLimitResult, client_ip
from leadfunnel.core.permissions import Permission
from leadfunnel.core.trust import TrustContext
from leadfunnel.models.user import User
from leadfunnel.services.notifications import Integrations
from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)


async def get_trust_context(request: Request) -> TrustContext:
    """Trust context established by the authorization gate"""
    trust_context = getattr(request.state, "trust_context", None)
    if trust_context is None:
        raise AuthenticationError()
    return trust_context


def require_permission(required_permission: Permission):
    """Dependency factory to check permissions"""
    async def check_permission(trust: TrustContext = Depends(get_trust_context)) -> TrustContext:
        if not trust.can(required_permission):
            raise AuthorizationError(f"Permission required: {required_permission.value}")
        return trust
    return check_permission


async def get_platform_admin(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> User:
    """Platform-level admin: role admin with no owning tenant"""
    resolved = resolve_session(request)
    if resolved is None:
        raise AuthenticationError()

    user = await session.get(User, resolved.user_id)
    if user is None:
        raise AuthenticationError()
    if not user.is_active or not user.is_platform_admin:
        raise AuthorizationError("Platform admin access required")

    logger.debug(f"Platform admin authenticated: {user.id}")
    return user


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_integrations(request: Request) -> Integrations:
    return request.app.state.integrations


def get_tracking_id(request: Request) -> str:
    tracking_id = getattr(request.state, "tracking_id", None)
    if tracking_id is None:
        tracking_id = generate_tracking_id()
        request.state.tracking_id = tracking_id
    return tracking_id


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitResult:
    """Per-IP limit for unauthenticated write endpoints"""
    limiter: RateLimiter = request.app.state.rate_limiter
    ip = client_ip(request)
    result = limiter.hit(ip)
    if not result.allowed:
        logger.warning(f"Rate limit exceeded for {ip}")
        retry_after = max(0, math.ceil(result.reset_at - time.time()))
        headers = result.headers()
        headers["Retry-After"] = str(retry_after)
        raise RateLimitError(details={"retry_after": retry_after}, headers=headers)
    response.headers.update(result.headers())
    return result
