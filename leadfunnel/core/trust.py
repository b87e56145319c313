"""
Request-scoped trust context produced by the authorization gate
"""

from dataclasses import dataclass
from typing import FrozenSet
import uuid

from leadfunnel.core.permissions import Permission, get_permissions_for_role


@dataclass(frozen=True)
class TrustContext:
    """Tenant, user and role resolved from the session for one request"""
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    role: str

    @property
    def permissions(self) -> FrozenSet[Permission]:
        return frozenset(get_permissions_for_role(self.role))

    def can(self, permission: Permission) -> bool:
        return permission in self.permissions
