"""
Pydantic schemas for leads and activities
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
import re
import uuid

from leadfunnel.core.sanitize import sanitize_value
from leadfunnel.models.activity import ActivityType
from leadfunnel.models.lead import LeadPriority, LeadStatus

NAME_PATTERN = r"^[a-zA-ZąćęłńóśźżĄĆĘŁŃÓŚŹŻ\s\-']+$"
PHONE_PATTERN = re.compile(r"^(\+48)?[\s\-]?[0-9]{3}[\s\-]?[0-9]{3}[\s\-]?[0-9]{3}$")


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Validate a Polish phone number and strip separators"""
    if value is None or value == "":
        return None
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return re.sub(r"[\s\-]", "", value)


class SanitizedModel(BaseModel):
    """Strips markup and script patterns from every incoming string"""

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        return sanitize_value(data) if isinstance(data, dict) else data


class PublicLeadSubmission(SanitizedModel):
    """Lead form posted from the marketing site"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field(..., alias="firstName", min_length=2, max_length=50, pattern=NAME_PATTERN)
    last_name: Optional[str] = Field(default=None, alias="lastName", max_length=50)
    company: str = Field(..., min_length=2, max_length=100)
    email: EmailStr = Field(..., max_length=254)
    phone: Optional[str] = None
    message: str = Field(..., min_length=10, max_length=500)
    source: Optional[str] = Field(default=None, max_length=50)
    consent: bool

    utm_source: Optional[str] = Field(default=None, max_length=200)
    utm_medium: Optional[str] = Field(default=None, max_length=200)
    utm_campaign: Optional[str] = Field(default=None, max_length=200)
    utm_term: Optional[str] = Field(default=None, max_length=200)
    utm_content: Optional[str] = Field(default=None, max_length=200)

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value)

    @field_validator("consent")
    @classmethod
    def _consent(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Consent is required")
        return value

    def utm(self) -> Dict[str, str]:
        return {
            name: getattr(self, name)
            for name in ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")
            if getattr(self, name)
        }


class LeadCreate(SanitizedModel):
    """Lead added by a tenant user or imported from a file"""

    model_config = ConfigDict(extra="ignore")

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company: str = Field(..., min_length=1, max_length=200)
    email: EmailStr = Field(..., max_length=254)
    phone: Optional[str] = Field(default=None, max_length=30)
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    estimated_value: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    closing_probability: Optional[int] = Field(default=None, ge=0, le=100)
    source: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=5000)
    next_action: Optional[str] = Field(default=None, max_length=500)
    assigned_to: Optional[uuid.UUID] = None

    @field_validator("phone", "source", "notes", "next_action", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class LeadUpdate(SanitizedModel):
    """Partial update. Ownership fields such as client_id are rejected."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    assigned_to: Optional[uuid.UUID] = None
    notes: Optional[str] = Field(default=None, max_length=5000)
    estimated_value: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    closing_probability: Optional[int] = Field(default=None, ge=0, le=100)
    next_action: Optional[str] = Field(default=None, max_length=500)


class LeadPatchRequest(LeadUpdate):
    id: uuid.UUID


class PriorityUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    priority: LeadPriority


class AssignmentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assigned_to: Optional[uuid.UUID] = None


class BulkLeadChanges(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    assigned_to: Optional[uuid.UUID] = None


class BulkUpdateRequest(BaseModel):
    lead_ids: List[uuid.UUID] = Field(..., min_length=1, max_length=500)
    updates: BulkLeadChanges


class ActivityCreate(SanitizedModel):
    model_config = ConfigDict(extra="forbid")

    type: ActivityType
    description: str = Field(..., min_length=1, max_length=2000)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def _manual_types_only(cls, value: ActivityType) -> ActivityType:
        if value == ActivityType.STATUS_CHANGE:
            raise ValueError("status_change activities are recorded automatically")
        return value


class QualificationData(SanitizedModel):
    """Qualification questionnaire; accepts camelCase or snake_case keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    industry: Optional[str] = None
    company_size: Optional[str] = None
    position: Optional[str] = None
    decision_maker: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    expected_roi: Optional[str] = None
    current_solution: Optional[str] = None
    pain_points: Optional[List[str]] = None
    team_size: Optional[str] = None
    current_results: Optional[str] = None
    main_goals: Optional[List[str]] = None
    priority_areas: Optional[List[str]] = None
    success_metrics: Optional[str] = None
    previous_experience: Optional[str] = None
    specific_requirements: Optional[str] = None

    @field_validator(
        "industry", "company_size", "position", "decision_maker", "budget", "timeline",
        "expected_roi", "current_solution", "team_size", "current_results",
        "success_metrics", "previous_experience", "specific_requirements",
        mode="before",
    )
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "yes" if value else "no"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("pain_points", "main_goals", "priority_areas", mode="before")
    @classmethod
    def _single_to_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class QualifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: Optional[uuid.UUID] = Field(default=None, alias="leadId")
    qualification_data: Optional[Dict[str, Any]] = Field(default=None, alias="qualificationData")


class ImportRequest(BaseModel):
    leads: List[Dict[str, Any]] = Field(..., max_length=1000)
    skip_duplicates: bool = True
    update_existing: bool = False
