"""
Session login/logout and the current-user endpoint
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.auth import clear_session_cookie, create_session_token, set_session_cookie, verify_password
from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import get_trust_context
from leadfunnel.core.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import Tenant, User
from leadfunnel.schemas.auth import LoginRequest

logger = structlog.get_logger(__name__)
router = APIRouter()
me_router = APIRouter()


@router.post("/login")
async def login_user(
    login_data: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Verify credentials and open a session"""
    query = select(User).where(func.lower(User.email) == login_data.email.lower())
    if login_data.tenant_domain:
        query = query.join(Tenant, Tenant.id == User.client_id).where(
            Tenant.domain == login_data.tenant_domain.lower()
        )
    users = (await session.exec(query)).all()

    if len(users) > 1:
        raise ValidationError(
            "Email is registered with several clients",
            {"tenant_domain": ["Provide the client domain to sign in"]},
        )

    user = users[0] if users else None
    if user is None or not verify_password(login_data.password, user.password_hash):
        logger.info("Failed login attempt")
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthorizationError("User account is disabled")

    user.last_login_at = datetime.utcnow()
    session.add(user)
    await session.commit()

    token = create_session_token(user.id)
    logger.info(f"User logged in: {user.id}")

    response = JSONResponse({
        "success": True,
        "data": {
            "access_token": token,
            "token_type": "bearer",
            "user_id": str(user.id),
            "role": user.role.value,
            "client_id": str(user.client_id) if user.client_id else None,
        },
    })
    set_session_cookie(response, token)
    return response


@router.post("/logout")
async def logout_user():
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


@me_router.get("/me")
async def current_user(
    trust: TrustContext = Depends(get_trust_context),
    session: AsyncSession = Depends(get_session),
):
    """Trust context of this request plus the user's profile"""
    user = await session.get(User, trust.user_id)
    tenant = await session.get(Tenant, trust.tenant_id)
    if user is None or tenant is None:
        raise NotFoundError("User not found")

    return {
        "success": True,
        "data": {
            "user_id": str(trust.user_id),
            "client_id": str(trust.tenant_id),
            "role": trust.role,
            "permissions": sorted(permission.value for permission in trust.permissions),
            "email": user.email,
            "full_name": user.full_name,
            "client": {
                "name": tenant.name,
                "domain": tenant.domain,
                "settings": tenant.settings,
                "subscription_plan": tenant.subscription_plan,
            },
        },
    }
