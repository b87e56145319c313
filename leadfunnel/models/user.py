"""
User model with roles and tenant scoping
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid
from enum import Enum


class UserRole(str, Enum):
    """User roles for RBAC"""
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"


class User(SQLModel, table=True):
    """Portal user. Platform admins are the only users without a tenant."""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("client_id", "email", name="uq_user_client_email"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    client_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="clients.id",
        index=True,
        nullable=True,
        description="Owning tenant, null only for platform admins",
    )

    # Authentication
    email: str = Field(index=True, nullable=False, max_length=255)
    password_hash: Optional[str] = Field(default=None, nullable=True)

    # Profile
    full_name: str = Field(default="", max_length=200)

    # RBAC
    role: UserRole = Field(default=UserRole.AGENT, nullable=False)

    # Status
    is_active: bool = Field(default=True, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login_at: Optional[datetime] = None

    @property
    def is_platform_admin(self) -> bool:
        return self.client_id is None and self.role == UserRole.ADMIN
