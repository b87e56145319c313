"""
Request authorization gate for multi-tenant isolation

Every request is classified as public, tenant-scoped or passthrough. Tenant-scoped
requests must carry a valid session whose user belongs to a tenant; the gate then
stores a TrustContext on request.state that handlers use as the only source of
tenant, user and role. Nothing the caller sends (headers, body, query) can set it.
"""

from enum import Enum
from typing import Optional, Tuple

from fastapi import status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from leadfunnel.core.auth import ResolvedSession, create_session_token, resolve_session, set_session_cookie
from leadfunnel.core.errors import error_body
from leadfunnel.core.trust import TrustContext
from leadfunnel.models.user import User

logger = structlog.get_logger(__name__)

LOGIN_PATH = "/client/login"
BROWSER_PORTAL_PREFIX = "/client"
SESSION_REFRESH_HEADER = "X-Session-Refresh"


class RequestClass(str, Enum):
    PUBLIC = "public"
    TENANT_SCOPED = "tenant_scoped"
    PASSTHROUGH = "passthrough"


class GateOutcome(str, Enum):
    AUTHORIZED = "authorized"
    REDIRECTED = "redirected"
    DENIED = "denied"


def path_matches(path: str, prefix: str) -> bool:
    """Prefix match on whole path segments (/client matches /client/x, not /clients)"""
    prefix = prefix.rstrip("/") or "/"
    if prefix == "/":
        return path == "/"
    return path == prefix or path.startswith(prefix + "/")


def public_prefixes(api_prefix: str) -> Tuple[str, ...]:
    return (
        "/",
        LOGIN_PATH,
        f"{api_prefix}/leads",
        f"{api_prefix}/health",
        f"{api_prefix}/auth",
        "/docs",
        "/openapi.json",
    )


def classify_path(path: str, api_prefix: str = "/api") -> RequestClass:
    """Decide which class a request path falls into"""
    if any(path_matches(path, prefix) for prefix in public_prefixes(api_prefix)):
        return RequestClass.PUBLIC
    if path_matches(path, f"{api_prefix}/client") or path_matches(path, BROWSER_PORTAL_PREFIX):
        return RequestClass.TENANT_SCOPED
    return RequestClass.PASSTHROUGH


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Resolve the session of tenant-scoped requests into a TrustContext"""

    def __init__(self, app, api_prefix: str = "/api"):
        super().__init__(app)
        self.api_prefix = api_prefix.rstrip("/")

    async def dispatch(self, request: Request, call_next):
        request.state.trust_context = None
        path = request.url.path

        if classify_path(path, self.api_prefix) is not RequestClass.TENANT_SCOPED:
            return await call_next(request)

        is_api = path_matches(path, self.api_prefix)
        session = resolve_session(request)
        if session is None:
            return self._reject(is_api, status.HTTP_401_UNAUTHORIZED, "Unauthorized")

        try:
            trust_context, denial = await self._load_trust_context(request, session)
        except (SQLAlchemyError, OSError) as e:
            # Fail closed
            logger.error(f"Trust context lookup failed for user {session.user_id}: {e}")
            return self._reject(is_api, status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable")

        if trust_context is None:
            code, message = denial
            return self._reject(is_api, code, message)

        request.state.trust_context = trust_context
        structlog.contextvars.bind_contextvars(
            tenant_id=str(trust_context.tenant_id),
            user_id=str(trust_context.user_id),
        )
        logger.debug(f"Request authorized for tenant {trust_context.tenant_id} as {trust_context.role}")

        response = await call_next(request)

        if session.needs_refresh():
            refreshed = create_session_token(session.user_id)
            set_session_cookie(response, refreshed)
            response.headers[SESSION_REFRESH_HEADER] = refreshed
        return response

    async def _load_trust_context(
        self, request: Request, session: ResolvedSession
    ) -> Tuple[Optional[TrustContext], Optional[Tuple[int, str]]]:
        """Read tenant and role from the user's current record"""
        async with request.app.state.session_maker() as db:
            user = await db.get(User, session.user_id)

        if user is None:
            return None, (status.HTTP_401_UNAUTHORIZED, "Unauthorized")
        if not user.is_active:
            return None, (status.HTTP_403_FORBIDDEN, "User account is disabled")
        if user.client_id is None:
            return None, (status.HTTP_403_FORBIDDEN, "No client associated with user")

        role = user.role.value if hasattr(user.role, "value") else str(user.role)
        return TrustContext(tenant_id=user.client_id, user_id=user.id, role=role), None

    def _reject(self, is_api: bool, status_code: int, message: str) -> Response:
        if is_api:
            outcome = GateOutcome.DENIED
            response: Response = JSONResponse(status_code=status_code, content=error_body(message))
        else:
            outcome = GateOutcome.REDIRECTED
            target = LOGIN_PATH
            if status_code == status.HTTP_403_FORBIDDEN:
                target = f"{LOGIN_PATH}?error=no_tenant"
            response = RedirectResponse(url=target, status_code=status.HTTP_303_SEE_OTHER)
        logger.info(f"Gate {outcome.value}: {message}", status_code=status_code)
        return response
