"""
Tenant (client) model - Multi-tenancy foundation
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Any, Dict, Optional
import uuid


DEFAULT_TENANT_SETTINGS: Dict[str, Any] = {
    "timezone": "Europe/Warsaw",
    "currency": "PLN",
    "working_hours": {"start": "09:00", "end": "17:00"},
    "lead_scoring": {
        "budget_weight": 30,
        "timeline_weight": 20,
        "company_size_weight": 25,
        "decision_maker_weight": 15,
        "pain_points_weight": 10,
    },
}


class Tenant(SQLModel, table=True):
    """Agency client owning users, leads and rotations"""

    __tablename__ = "clients"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    domain: str = Field(unique=True, index=True, max_length=255, description="Immutable after creation")

    # Timezone, currency, working hours, lead-scoring weights
    settings: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    subscription_plan: str = Field(default="basic", max_length=50, description="basic, pro, enterprise")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)
