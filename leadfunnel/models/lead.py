"""
Lead model with the sales pipeline state machine
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid


class LeadStatus(str, Enum):
    """Pipeline stage of a lead"""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    CLOSED = "closed"           # Won, terminal
    LOST = "lost"               # Terminal


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TERMINAL_STATUSES = frozenset({LeadStatus.CLOSED, LeadStatus.LOST})

# Closing probability assumed for a status when none was provided
DEFAULT_CLOSING_PROBABILITY = {
    LeadStatus.NEW: 10,
    LeadStatus.CONTACTED: 25,
    LeadStatus.QUALIFIED: 50,
    LeadStatus.PROPOSAL: 70,
    LeadStatus.CLOSED: 100,
    LeadStatus.LOST: 0,
}

QUALIFICATION_FIELDS = (
    "industry",
    "company_size",
    "position",
    "decision_maker",
    "budget",
    "timeline",
    "expected_roi",
    "current_solution",
    "pain_points",
    "team_size",
    "current_results",
    "main_goals",
    "priority_areas",
    "success_metrics",
    "previous_experience",
    "specific_requirements",
)


class Lead(SQLModel, table=True):
    """Sales prospect owned by exactly one tenant"""

    __tablename__ = "leads"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    client_id: uuid.UUID = Field(
        foreign_key="clients.id",
        index=True,
        description="Owning tenant, never changes after creation",
    )

    # Contact
    first_name: str = Field(max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    company: str = Field(max_length=200, index=True)
    email: str = Field(max_length=254, index=True, description="Stored lower-cased")
    phone: Optional[str] = Field(default=None, max_length=30)
    message: Optional[str] = Field(default=None, max_length=2000)

    # Pipeline
    status: LeadStatus = Field(default=LeadStatus.NEW, index=True)
    priority: LeadPriority = Field(default=LeadPriority.MEDIUM, index=True)
    source: str = Field(default="website", max_length=50, index=True)
    assigned_to: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True, nullable=True)
    estimated_value: Optional[float] = Field(default=None, ge=0)
    closing_probability: Optional[int] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None
    next_action: Optional[str] = Field(default=None, max_length=500)

    # Attribution
    tracking_id: Optional[str] = Field(default=None, max_length=64, index=True)
    attribution: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # Qualification
    industry: Optional[str] = None
    company_size: Optional[str] = None
    position: Optional[str] = None
    decision_maker: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    expected_roi: Optional[str] = None
    current_solution: Optional[str] = None
    pain_points: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    team_size: Optional[str] = None
    current_results: Optional[str] = None
    main_goals: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    priority_areas: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    success_metrics: Optional[str] = None
    previous_experience: Optional[str] = None
    specific_requirements: Optional[str] = None
    qualified_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # State machine methods
    def is_terminal(self) -> bool:
        return LeadStatus(self.status) in TERMINAL_STATUSES

    def can_transition_to(self, new_status: LeadStatus) -> tuple[bool, str]:
        """Check whether the pipeline allows moving to new_status"""
        if new_status == self.status:
            return True, "Status unchanged"
        if self.is_terminal():
            return False, f"Lead is {LeadStatus(self.status).value} and cannot change status"
        return True, "Transition allowed"

    def transition_to(self, new_status: LeadStatus) -> Optional[LeadStatus]:
        """
        Move the lead to new_status.

        Returns the previous status when the status changed, None for a no-op.
        Raises ValueError when leaving a terminal status.
        """
        new_status = LeadStatus(new_status)
        allowed, reason = self.can_transition_to(new_status)
        if not allowed:
            raise ValueError(f"Cannot transition to {new_status.value}: {reason}")
        if new_status == self.status:
            return None

        previous = LeadStatus(self.status)
        self.status = new_status
        if new_status == LeadStatus.CLOSED:
            self.closing_probability = 100
        elif new_status == LeadStatus.LOST:
            self.closing_probability = 0
        self.updated_at = datetime.utcnow()
        return previous

    def apply_default_probability(self) -> None:
        """Fill closing_probability from the status when it was not provided"""
        if self.closing_probability is None:
            self.closing_probability = DEFAULT_CLOSING_PROBABILITY[LeadStatus(self.status)]

    def qualify(self, qualification: Dict[str, Any]) -> Optional[LeadStatus]:
        """
        Record qualification data and move the lead to QUALIFIED.

        Re-qualifying overwrites the previous data and re-stamps qualified_at.
        Returns the previous status when the status changed.
        """
        if self.is_terminal():
            raise ValueError(f"Cannot qualify a {LeadStatus(self.status).value} lead")

        for field_name in QUALIFICATION_FIELDS:
            if field_name in qualification:
                setattr(self, field_name, qualification[field_name])

        previous = self.transition_to(LeadStatus.QUALIFIED)
        now = datetime.utcnow()
        self.qualified_at = now
        self.updated_at = now
        return previous

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
