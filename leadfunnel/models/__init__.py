"""
Database models
"""

from leadfunnel.models.tenant import Tenant, DEFAULT_TENANT_SETTINGS
from leadfunnel.models.user import User, UserRole
from leadfunnel.models.lead import (
    Lead,
    LeadStatus,
    LeadPriority,
    TERMINAL_STATUSES,
    DEFAULT_CLOSING_PROBABILITY,
    QUALIFICATION_FIELDS,
)
from leadfunnel.models.activity import Activity, ActivityType
from leadfunnel.models.team_rotation import TeamRotation, RotationType

__all__ = [
    "Tenant",
    "DEFAULT_TENANT_SETTINGS",
    "User",
    "UserRole",
    "Lead",
    "LeadStatus",
    "LeadPriority",
    "TERMINAL_STATUSES",
    "DEFAULT_CLOSING_PROBABILITY",
    "QUALIFICATION_FIELDS",
    "Activity",
    "ActivityType",
    "TeamRotation",
    "RotationType",
]
