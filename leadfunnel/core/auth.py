"""
Session tokens (JWT) and password hashing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from starlette.requests import HTTPConnection
from starlette.responses import Response
from typing import Dict, Optional
import uuid

from leadfunnel.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_TOKEN_TYPE = "session"


@dataclass(frozen=True)
class ResolvedSession:
    """A verified session token"""
    user_id: uuid.UUID
    expires_at: datetime
    token: str

    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        settings = get_settings()
        now = now or datetime.utcnow()
        return self.expires_at - now <= timedelta(minutes=settings.SESSION_REFRESH_THRESHOLD_MINUTES)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_session_token(user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create a session JWT. Tenant and role are looked up per request, not carried here."""
    settings = get_settings()
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.SESSION_EXPIRE_MINUTES))

    to_encode = {
        "sub": str(user_id),
        "typ": SESSION_TOKEN_TYPE,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[Dict]:
    """Decode and validate a session JWT"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("typ") != SESSION_TOKEN_TYPE:
        return None
    return payload


def verify_session_token(token: str) -> Optional[ResolvedSession]:
    """Verify token and return the session, None when invalid or expired"""
    payload = decode_session_token(token)
    if payload is None:
        return None
    try:
        user_id = uuid.UUID(payload["sub"])
        expires_at = datetime.utcfromtimestamp(int(payload["exp"]))
    except (KeyError, TypeError, ValueError):
        return None
    return ResolvedSession(user_id=user_id, expires_at=expires_at, token=token)


def extract_session_token(conn: HTTPConnection) -> Optional[str]:
    """Read the session token from the session cookie or a bearer header"""
    settings = get_settings()
    token = conn.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    authorization = conn.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def resolve_session(conn: HTTPConnection) -> Optional[ResolvedSession]:
    """Identity & session resolution. Expired and invalid tokens count as no session."""
    token = extract_session_token(conn)
    if not token:
        return None
    return verify_session_token(token)


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().SESSION_COOKIE_NAME, path="/")
