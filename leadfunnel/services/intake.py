"""
Public lead intake

A submission is written to every available sink (database, then the spreadsheet
ledger). The caller is told the submission succeeded even when all sinks fail;
in that case the full payload is logged so it can be recovered.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
import structlog

from leadfunnel.core.config import Settings
from leadfunnel.core.events import EventBus, LeadCreated
from leadfunnel.core.sanitize import detect_source, extract_utm_params
from leadfunnel.models import ActivityType, Lead, LeadPriority, LeadStatus, Tenant
from leadfunnel.schemas.lead import PublicLeadSubmission
from leadfunnel.services.leads import lead_snapshot, record_activity
from leadfunnel.services.notifications import Integrations

logger = structlog.get_logger(__name__)


class DefaultTenantMissing(LookupError):
    pass


@dataclass
class IntakeResult:
    tracking_id: str
    lead_id: Optional[uuid.UUID] = None
    sinks: List[str] = field(default_factory=list)

    @property
    def captured(self) -> bool:
        return bool(self.sinks)


async def get_default_tenant(session, settings: Settings) -> Optional[Tenant]:
    return (await session.exec(
        select(Tenant).where(Tenant.domain == settings.DEFAULT_TENANT_DOMAIN)
    )).first()


def build_lead(
    submission: PublicLeadSubmission,
    tracking_id: str,
    referrer: Optional[str],
    user_agent: Optional[str],
) -> Lead:
    """Unsaved lead for a public submission; client_id is filled in by the store sink"""
    attribution: Dict[str, Any] = extract_utm_params(referrer)
    attribution.update(submission.utm())
    if referrer:
        attribution["referrer"] = referrer

    lead = Lead(
        client_id=uuid.UUID(int=0),
        first_name=submission.first_name,
        last_name=submission.last_name,
        company=submission.company,
        email=submission.email.lower(),
        phone=submission.phone,
        message=submission.message,
        status=LeadStatus.NEW,
        priority=LeadPriority.MEDIUM,
        source=submission.source or detect_source(referrer, user_agent),
        tracking_id=tracking_id,
        attribution=attribution,
    )
    lead.apply_default_probability()
    return lead


async def _store(session_maker: async_sessionmaker, settings: Settings, lead: Lead) -> uuid.UUID:
    async with session_maker() as session:
        tenant = await get_default_tenant(session, settings)
        if tenant is None:
            raise DefaultTenantMissing(f"Default tenant {settings.DEFAULT_TENANT_DOMAIN} is not provisioned")

        lead.client_id = tenant.id
        session.add(lead)
        await session.flush()
        record_activity(
            session,
            client_id=tenant.id,
            lead_id=lead.id,
            type=ActivityType.NOTE,
            description="Lead submitted through the contact form",
            details={"tracking_id": lead.tracking_id, "source": lead.source},
        )
        await session.commit()
        await session.refresh(lead)
        return lead.id


async def submit_public_lead(
    session_maker: async_sessionmaker,
    settings: Settings,
    integrations: Integrations,
    bus: EventBus,
    submission: PublicLeadSubmission,
    tracking_id: str,
    referrer: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> IntakeResult:
    lead = build_lead(submission, tracking_id, referrer, user_agent)
    result = IntakeResult(tracking_id=tracking_id)

    try:
        result.lead_id = await _store(session_maker, settings, lead)
        result.sinks.append("database")
    except (SQLAlchemyError, OSError, DefaultTenantMissing) as e:
        logger.error(f"Failed to store lead in database: {e}", tracking_id=tracking_id)

    snapshot = lead_snapshot(lead)
    if result.lead_id is None:
        snapshot["id"] = None
        snapshot["client_id"] = None

    if integrations.ledger.is_enabled:
        try:
            await integrations.ledger.append_lead(snapshot)
            result.sinks.append("ledger")
        except Exception as e:
            logger.error(f"Failed to append lead to ledger: {e}", tracking_id=tracking_id)

    if not result.captured:
        logger.critical(
            "Lead was not captured by any sink",
            tracking_id=tracking_id,
            lead=snapshot,
        )

    logger.info(f"Public lead received via {snapshot['source']}", tracking_id=tracking_id, sinks=result.sinks)
    bus.publish_nowait(LeadCreated(
        snapshot,
        lead.client_id if result.lead_id else None,
        public_intake=True,
        tracking_id=tracking_id,
    ))
    return result
