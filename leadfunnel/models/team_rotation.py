"""
Team rotation model - time-boxed agent duty windows
"""

from sqlmodel import Field, SQLModel
from datetime import date, datetime
from typing import Optional
from enum import Enum
import uuid


class RotationType(str, Enum):
    THIRTY_DAYS = "30_days"
    NINETY_DAYS = "90_days"

    @property
    def length_days(self) -> int:
        return 30 if self is RotationType.THIRTY_DAYS else 90


class TeamRotation(SQLModel, table=True):
    """Agent rotation within a tenant"""

    __tablename__ = "team_rotations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    client_id: uuid.UUID = Field(foreign_key="clients.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    rotation_type: RotationType = Field(index=True)
    start_date: date
    end_date: date
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    def days_remaining(self, today: date) -> int:
        return (self.end_date - today).days
