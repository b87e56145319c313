"""
Lead lifecycle: creation, updates, assignment, qualification and activities

Every query is scoped by the tenant id taken from the caller's TrustContext.
A lead outside that scope is reported as not found.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy import func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.errors import ConflictError, NotFoundError
from leadfunnel.core.events import EventBus, LeadAssigned, LeadCreated, LeadQualified, LeadStatusChanged
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import Activity, ActivityType, Lead, LeadStatus, User
from leadfunnel.schemas.lead import ActivityCreate, BulkUpdateRequest, LeadCreate, QualificationData

logger = structlog.get_logger(__name__)

SORTABLE_FIELDS = {
    "created_at": Lead.created_at,
    "updated_at": Lead.updated_at,
    "company": Lead.company,
    "estimated_value": Lead.estimated_value,
    "priority": Lead.priority,
    "status": Lead.status,
}

MUTABLE_FIELDS = ("priority", "notes", "estimated_value", "closing_probability", "next_action")


def lead_snapshot(lead: Lead) -> Dict[str, Any]:
    """JSON-safe copy of a lead for responses and event payloads"""
    return lead.model_dump(mode="json")


def activity_snapshot(activity: Activity) -> Dict[str, Any]:
    data = activity.model_dump(mode="json", exclude={"details"})
    data["metadata"] = activity.details or {}
    return data


def record_activity(
    session: AsyncSession,
    client_id: uuid.UUID,
    type: ActivityType,
    description: str,
    lead_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Activity:
    """Stage an activity on the session; the caller commits"""
    activity = Activity(
        client_id=client_id,
        lead_id=lead_id,
        user_id=user_id,
        type=type,
        description=description,
        details=details or {},
    )
    session.add(activity)
    return activity


async def get_lead(session: AsyncSession, tenant_id: uuid.UUID, lead_id: uuid.UUID) -> Lead:
    lead = (await session.exec(
        select(Lead).where(Lead.id == lead_id, Lead.client_id == tenant_id)
    )).first()
    if lead is None:
        raise NotFoundError("Lead not found")
    return lead


async def find_lead_by_email(session: AsyncSession, tenant_id: uuid.UUID, email: str) -> Optional[Lead]:
    """Case-insensitive lookup used for deduplication"""
    return (await session.exec(
        select(Lead).where(
            Lead.client_id == tenant_id,
            func.lower(Lead.email) == email.strip().lower(),
        )
    )).first()


async def ensure_assignee(session: AsyncSession, tenant_id: uuid.UUID, user_id: uuid.UUID) -> User:
    """Assignee must be an active user of the same tenant"""
    user = await session.get(User, user_id)
    if user is None or user.client_id != tenant_id or not user.is_active:
        raise NotFoundError("Assignee not found")
    return user


async def create_lead(
    session: AsyncSession,
    trust: TrustContext,
    data: LeadCreate,
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> Lead:
    """Authenticated create. The owning tenant always comes from the trust context."""
    if data.assigned_to is not None:
        await ensure_assignee(session, trust.tenant_id, data.assigned_to)

    values = data.model_dump()
    values["email"] = values["email"].lower()
    values["source"] = values.get("source") or "manual"
    lead = Lead(client_id=trust.tenant_id, tracking_id=tracking_id, **values)
    if lead.is_terminal():
        lead.closing_probability = 100 if lead.status == LeadStatus.CLOSED else 0
    lead.apply_default_probability()

    session.add(lead)
    await session.flush()
    record_activity(
        session,
        client_id=trust.tenant_id,
        lead_id=lead.id,
        user_id=trust.user_id,
        type=ActivityType.NOTE,
        description="Lead created",
        details={"source": lead.source},
    )
    await session.commit()
    await session.refresh(lead)

    logger.info(f"Lead {lead.id} created by user {trust.user_id}")
    bus.publish_nowait(LeadCreated(lead_snapshot(lead), trust.tenant_id, tracking_id=tracking_id))
    return lead


async def update_lead(
    session: AsyncSession,
    trust: TrustContext,
    lead_id: uuid.UUID,
    changes: Dict[str, Any],
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> Lead:
    """
    Partial update of status, priority, assignment and notes.

    Status changes append a status_change activity and publish LeadStatusChanged.
    The whole change is rejected before anything is applied when it is invalid.
    """
    lead = await get_lead(session, trust.tenant_id, lead_id)

    new_status = changes.get("status")
    if new_status is not None:
        allowed, reason = lead.can_transition_to(LeadStatus(new_status))
        if not allowed:
            raise ConflictError(reason)

    assignment_changed = "assigned_to" in changes and changes["assigned_to"] != lead.assigned_to
    if assignment_changed and changes["assigned_to"] is not None:
        await ensure_assignee(session, trust.tenant_id, changes["assigned_to"])

    for field_name in MUTABLE_FIELDS:
        if field_name not in changes:
            continue
        if field_name == "priority" and changes[field_name] is None:
            continue
        setattr(lead, field_name, changes[field_name])
    if assignment_changed:
        lead.assigned_to = changes["assigned_to"]

    previous_status = lead.transition_to(new_status) if new_status is not None else None
    if lead.is_terminal():
        # Terminal stages pin the probability regardless of manual input
        lead.closing_probability = 100 if lead.status == LeadStatus.CLOSED else 0
    lead.updated_at = datetime.utcnow()

    if previous_status is not None:
        record_activity(
            session,
            client_id=trust.tenant_id,
            lead_id=lead.id,
            user_id=trust.user_id,
            type=ActivityType.STATUS_CHANGE,
            description=f"Status changed from {previous_status.value} to {lead.status.value}",
            details={"from": previous_status.value, "to": lead.status.value},
        )

    session.add(lead)
    await session.commit()
    await session.refresh(lead)

    snapshot = lead_snapshot(lead)
    if previous_status is not None:
        logger.info(f"Lead {lead.id} status {previous_status.value} -> {lead.status.value}")
        bus.publish_nowait(LeadStatusChanged(
            snapshot,
            trust.tenant_id,
            old_status=previous_status.value,
            new_status=lead.status.value,
            changed_by=trust.user_id,
            tracking_id=tracking_id,
        ))
    if assignment_changed:
        bus.publish_nowait(LeadAssigned(
            snapshot,
            trust.tenant_id,
            assigned_to=lead.assigned_to,
            assigned_by=trust.user_id,
            tracking_id=tracking_id,
        ))
    return lead


async def bulk_update_leads(
    session: AsyncSession,
    trust: TrustContext,
    request: BulkUpdateRequest,
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Apply the same change to several leads, reporting per-lead outcome"""
    changes = request.updates.model_dump(exclude_unset=True)
    updated: List[str] = []
    failed: List[Dict[str, str]] = []

    for lead_id in request.lead_ids:
        try:
            await update_lead(session, trust, lead_id, changes, bus, tracking_id)
            updated.append(str(lead_id))
        except (NotFoundError, ConflictError) as e:
            await session.rollback()
            failed.append({"id": str(lead_id), "error": e.message})

    logger.info(f"Bulk update: {len(updated)} updated, {len(failed)} failed")
    return {"success": True, "updated": updated, "failed": failed}


async def list_leads(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    status: Optional[LeadStatus] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Lead], int]:
    conditions = [Lead.client_id == tenant_id]
    if status:
        conditions.append(Lead.status == status)
    if priority:
        conditions.append(Lead.priority == priority)
    if assigned_to:
        conditions.append(Lead.assigned_to == assigned_to)
    if source:
        conditions.append(Lead.source == source)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(
            func.lower(Lead.first_name).like(pattern),
            func.lower(Lead.last_name).like(pattern),
            func.lower(Lead.company).like(pattern),
            func.lower(Lead.email).like(pattern),
        ))

    total = (await session.exec(select(func.count(Lead.id)).where(*conditions))).one()

    column = SORTABLE_FIELDS.get(sort_by, Lead.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    query = (
        select(Lead)
        .where(*conditions)
        .order_by(order, Lead.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    leads = (await session.exec(query)).all()
    return list(leads), total


async def list_activities(
    session: AsyncSession, tenant_id: uuid.UUID, lead_id: uuid.UUID
) -> List[Activity]:
    await get_lead(session, tenant_id, lead_id)
    activities = (await session.exec(
        select(Activity)
        .where(Activity.client_id == tenant_id, Activity.lead_id == lead_id)
        .order_by(Activity.created_at.desc())
    )).all()
    return list(activities)


async def log_activity(
    session: AsyncSession, trust: TrustContext, lead_id: uuid.UUID, data: ActivityCreate
) -> Activity:
    lead = await get_lead(session, trust.tenant_id, lead_id)
    activity = record_activity(
        session,
        client_id=trust.tenant_id,
        lead_id=lead.id,
        user_id=trust.user_id,
        type=data.type,
        description=data.description,
        details=data.metadata,
    )
    lead.updated_at = datetime.utcnow()
    session.add(lead)
    await session.commit()
    await session.refresh(activity)
    return activity


async def qualify_lead(
    session: AsyncSession,
    lead_id: uuid.UUID,
    qualification: QualificationData,
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> Lead:
    """
    Record qualification answers and move the lead to qualified.

    Called from the public questionnaire that follows a form submission, so the
    lead is addressed by id alone.
    """
    lead = await session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")

    try:
        previous_status = lead.qualify(qualification.model_dump(exclude_unset=True))
    except ValueError as e:
        raise ConflictError(str(e))

    if previous_status is not None:
        record_activity(
            session,
            client_id=lead.client_id,
            lead_id=lead.id,
            type=ActivityType.STATUS_CHANGE,
            description=f"Status changed from {previous_status.value} to qualified",
            details={"from": previous_status.value, "to": LeadStatus.QUALIFIED.value, "reason": "qualification"},
        )
    else:
        record_activity(
            session,
            client_id=lead.client_id,
            lead_id=lead.id,
            type=ActivityType.NOTE,
            description="Qualification data updated",
        )

    session.add(lead)
    await session.commit()
    await session.refresh(lead)

    snapshot = lead_snapshot(lead)
    logger.info(f"Lead {lead.id} qualified")
    bus.publish_nowait(LeadQualified(snapshot, lead.client_id, tracking_id=tracking_id))
    if previous_status is not None:
        bus.publish_nowait(LeadStatusChanged(
            snapshot,
            lead.client_id,
            old_status=previous_status.value,
            new_status=LeadStatus.QUALIFIED.value,
            tracking_id=tracking_id,
        ))
    return lead
