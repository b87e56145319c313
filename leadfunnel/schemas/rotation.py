"""
Pydantic schemas for team rotations
"""

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator
from datetime import date
from typing import Optional
import uuid

from leadfunnel.models.team_rotation import RotationType


class RotationCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: uuid.UUID
    rotation_type: RotationType
    start_date: date
    end_date: date

    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, value: date, info: ValidationInfo) -> date:
        start_date = info.data.get("start_date")
        if start_date is not None and value <= start_date:
            raise ValueError("end_date must be after start_date")
        return value


class RotationUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    is_active: Optional[bool] = None
    end_date: Optional[date] = None
