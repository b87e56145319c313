"""
Public lead capture endpoints used by the marketing site
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.config import get_settings
from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import (
    enforce_rate_limit,
    get_event_bus,
    get_integrations,
    get_tracking_id,
)
from leadfunnel.core.errors import ValidationError, field_errors
from leadfunnel.core.events import EventBus
from leadfunnel.schemas.lead import PublicLeadSubmission, QualificationData, QualifyRequest
from leadfunnel.services.intake import submit_public_lead
from leadfunnel.services.leads import qualify_lead
from leadfunnel.services.notifications import Integrations

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("", dependencies=[Depends(enforce_rate_limit)])
async def submit_lead(
    submission: PublicLeadSubmission,
    request: Request,
    bus: EventBus = Depends(get_event_bus),
    integrations: Integrations = Depends(get_integrations),
    tracking_id: str = Depends(get_tracking_id),
):
    """Capture a lead from the contact form"""
    result = await submit_public_lead(
        request.app.state.session_maker,
        get_settings(),
        integrations,
        bus,
        submission,
        tracking_id,
        referrer=request.headers.get("referer"),
        user_agent=request.headers.get("user-agent"),
    )
    return {
        "success": True,
        "message": "Dziękujemy! Skontaktujemy się z Tobą w ciągu 24 godzin.",
        "data": {
            "trackingId": result.tracking_id,
            "leadId": str(result.lead_id) if result.lead_id else None,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.post("/qualify")
async def qualify(
    payload: QualifyRequest,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
):
    """Store qualification answers for a submitted lead"""
    errors = {}
    if payload.lead_id is None:
        errors["leadId"] = ["Lead ID is required"]
    if not payload.qualification_data:
        errors["qualificationData"] = ["Qualification data is required"]
    if errors:
        raise ValidationError("Missing required fields", errors)

    try:
        qualification = QualificationData.model_validate(payload.qualification_data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Validation failed",
            {f"qualificationData.{field}": messages for field, messages in field_errors(e).items()},
        )

    if not qualification.model_dump(exclude_none=True):
        raise ValidationError(
            "Missing required fields",
            {"qualificationData": ["No recognized qualification fields"]},
        )

    lead = await qualify_lead(session, payload.lead_id, qualification, bus, tracking_id)
    return {
        "success": True,
        "message": "Lead qualified",
        "data": {
            "leadId": str(lead.id),
            "status": lead.status.value,
            "qualifiedAt": lead.qualified_at.isoformat(),
        },
    }
