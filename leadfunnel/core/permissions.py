"""
RBAC (Role-Based Access Control) permission system
"""

from enum import Enum
from typing import Set


class Permission(str, Enum):
    """Permission definitions"""
    # Lead permissions
    LEAD_VIEW = "lead:view"
    LEAD_CREATE = "lead:create"
    LEAD_UPDATE = "lead:update"
    LEAD_ASSIGN = "lead:assign"
    LEAD_IMPORT = "lead:import"

    # Activity permissions
    ACTIVITY_LOG = "activity:log"

    # Rotation permissions
    ROTATION_VIEW = "rotation:view"
    ROTATION_MANAGE = "rotation:manage"

    # Report permissions
    REPORTS_VIEW = "reports:view"


# Role permission mapping
ROLE_PERMISSIONS = {
    "admin": set(Permission),
    "manager": {
        Permission.LEAD_VIEW,
        Permission.LEAD_CREATE,
        Permission.LEAD_UPDATE,
        Permission.LEAD_ASSIGN,
        Permission.LEAD_IMPORT,
        Permission.ACTIVITY_LOG,
        Permission.ROTATION_VIEW,
        Permission.ROTATION_MANAGE,
        Permission.REPORTS_VIEW,
    },
    "agent": {
        # Agents work their own pipeline but do not reshape the team
        Permission.LEAD_VIEW,
        Permission.LEAD_CREATE,
        Permission.LEAD_UPDATE,
        Permission.ACTIVITY_LOG,
        Permission.ROTATION_VIEW,
    },
}


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role"""
    return ROLE_PERMISSIONS.get(str(role).lower(), set())
