"""
Append-only activity log for leads and tenant-level events
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum
import uuid


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    STATUS_CHANGE = "status_change"


class Activity(SQLModel, table=True):
    """Audit trail entry. lead_id is null for tenant-level entries."""

    __tablename__ = "activities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    client_id: uuid.UUID = Field(foreign_key="clients.id", index=True)
    lead_id: Optional[uuid.UUID] = Field(default=None, foreign_key="leads.id", index=True, nullable=True)
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", nullable=True)

    type: ActivityType = Field(index=True)
    description: str = Field(max_length=2000)

    # "metadata" is reserved on declarative models
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
