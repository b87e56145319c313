"""
Team rotation scheduling

Overlap rule: for one tenant, user and rotation type, no two active rotations
may share a day. Rotations of another type or another user never conflict.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence
import uuid

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.errors import ConflictError, NotFoundError, ValidationError
from leadfunnel.core.events import EventBus, RotationChanged
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import ActivityType, Lead, LeadStatus, RotationType, TeamRotation, User, UserRole
from leadfunnel.schemas.rotation import RotationCreate, RotationUpdate
from leadfunnel.services.leads import record_activity
from leadfunnel.services.stats import conversion_rate

logger = structlog.get_logger(__name__)

ENDING_SOON_DAYS = 7
STAGGER_DAYS = 7


def rotation_snapshot(rotation: TeamRotation, user: Optional[User] = None) -> Dict[str, Any]:
    data = rotation.model_dump(mode="json")
    if user is not None:
        data["user"] = {"id": str(user.id), "full_name": user.full_name, "email": user.email}
    return data


async def find_conflicting_rotation(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    rotation_type: RotationType,
    start_date: date,
    end_date: date,
    exclude_id: Optional[uuid.UUID] = None,
) -> Optional[TeamRotation]:
    """First active rotation of the same user and type overlapping [start_date, end_date]"""
    query = select(TeamRotation).where(
        TeamRotation.client_id == tenant_id,
        TeamRotation.user_id == user_id,
        TeamRotation.rotation_type == rotation_type,
        TeamRotation.is_active == True,  # noqa: E712
        TeamRotation.start_date <= end_date,
        TeamRotation.end_date >= start_date,
    )
    if exclude_id is not None:
        query = query.where(TeamRotation.id != exclude_id)
    return (await session.exec(query)).first()


def _conflict(existing: TeamRotation) -> ConflictError:
    return ConflictError(
        "Rotation overlaps an existing active rotation",
        details={
            "conflicting_rotation_id": str(existing.id),
            "start_date": existing.start_date.isoformat(),
            "end_date": existing.end_date.isoformat(),
        },
    )


async def create_rotation(
    session: AsyncSession,
    trust: TrustContext,
    data: RotationCreate,
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> TeamRotation:
    user = await session.get(User, data.user_id)
    if user is None or user.client_id != trust.tenant_id:
        raise NotFoundError("User not found")

    existing = await find_conflicting_rotation(
        session, trust.tenant_id, data.user_id, data.rotation_type, data.start_date, data.end_date
    )
    if existing is not None:
        raise _conflict(existing)

    rotation = TeamRotation(
        client_id=trust.tenant_id,
        user_id=data.user_id,
        rotation_type=data.rotation_type,
        start_date=data.start_date,
        end_date=data.end_date,
        is_active=True,
    )
    session.add(rotation)
    record_activity(
        session,
        client_id=trust.tenant_id,
        user_id=trust.user_id,
        type=ActivityType.NOTE,
        description=f"Rotation {data.rotation_type.value} created for {user.full_name or user.email}",
        details={
            "rotation_id": str(rotation.id),
            "action": "created",
            "user_id": str(data.user_id),
            "start_date": data.start_date.isoformat(),
            "end_date": data.end_date.isoformat(),
        },
    )
    await session.commit()
    await session.refresh(rotation)

    logger.info(f"Rotation {rotation.id} created for user {rotation.user_id}")
    bus.publish_nowait(RotationChanged(
        rotation.id, trust.tenant_id, rotation.user_id, {"action": "created"}, tracking_id=tracking_id
    ))
    return rotation


async def update_rotation(
    session: AsyncSession,
    trust: TrustContext,
    data: RotationUpdate,
    bus: EventBus,
    tracking_id: Optional[str] = None,
) -> TeamRotation:
    """Toggle is_active and/or move end_date, re-checking overlap for active results"""
    rotation = await session.get(TeamRotation, data.id)
    if rotation is None or rotation.client_id != trust.tenant_id:
        raise NotFoundError("Rotation not found")

    changes: Dict[str, Any] = {}
    end_date = rotation.end_date
    is_active = rotation.is_active

    if data.end_date is not None and data.end_date != rotation.end_date:
        if data.end_date <= rotation.start_date:
            raise ValidationError(
                "end_date must be after start_date",
                {"end_date": ["end_date must be after start_date"]},
            )
        changes["end_date"] = {"from": rotation.end_date.isoformat(), "to": data.end_date.isoformat()}
        end_date = data.end_date

    if data.is_active is not None and data.is_active != rotation.is_active:
        changes["is_active"] = {"from": rotation.is_active, "to": data.is_active}
        is_active = data.is_active

    if not changes:
        return rotation

    if is_active:
        existing = await find_conflicting_rotation(
            session,
            trust.tenant_id,
            rotation.user_id,
            RotationType(rotation.rotation_type),
            rotation.start_date,
            end_date,
            exclude_id=rotation.id,
        )
        if existing is not None:
            raise _conflict(existing)

    rotation.end_date = end_date
    rotation.is_active = is_active
    rotation.updated_at = datetime.utcnow()
    session.add(rotation)
    record_activity(
        session,
        client_id=trust.tenant_id,
        user_id=trust.user_id,
        type=ActivityType.NOTE,
        description="Rotation updated",
        details={"rotation_id": str(rotation.id), "changes": changes},
    )
    await session.commit()
    await session.refresh(rotation)

    logger.info(f"Rotation {rotation.id} updated: {sorted(changes)}")
    bus.publish_nowait(RotationChanged(
        rotation.id, trust.tenant_id, rotation.user_id, changes, tracking_id=tracking_id
    ))
    return rotation


async def rotation_performance(
    session: AsyncSession, tenant_id: uuid.UUID, rotation: TeamRotation
) -> Dict[str, Any]:
    """Leads assigned to the rotation's user and created inside its window"""
    window_start = datetime.combine(rotation.start_date, time.min)
    window_end = datetime.combine(rotation.end_date + timedelta(days=1), time.min)

    rows = (await session.exec(
        select(Lead.status, func.count(Lead.id), func.coalesce(func.sum(Lead.estimated_value), 0))
        .where(
            Lead.client_id == tenant_id,
            Lead.assigned_to == rotation.user_id,
            Lead.created_at >= window_start,
            Lead.created_at < window_end,
        )
        .group_by(Lead.status)
    )).all()

    total = sum(count for _, count, _ in rows)
    closed = sum(count for status, count, _ in rows if LeadStatus(status) == LeadStatus.CLOSED)
    revenue = sum(float(value or 0) for status, _, value in rows if LeadStatus(status) == LeadStatus.CLOSED)
    return {
        "leads": total,
        "closed": closed,
        "conversion_rate": conversion_rate(closed, total),
        "revenue": revenue,
    }


async def list_rotations(
    session: AsyncSession,
    trust: TrustContext,
    rotation_type: Optional[RotationType] = None,
    is_active: Optional[bool] = None,
    user_id: Optional[uuid.UUID] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or date.today()
    query = (
        select(TeamRotation, User)
        .join(User, User.id == TeamRotation.user_id)
        .where(TeamRotation.client_id == trust.tenant_id)
    )
    if rotation_type is not None:
        query = query.where(TeamRotation.rotation_type == rotation_type)
    if is_active is not None:
        query = query.where(TeamRotation.is_active == is_active)
    if user_id is not None:
        query = query.where(TeamRotation.user_id == user_id)
    query = query.order_by(TeamRotation.start_date.desc())

    pairs = (await session.exec(query)).all()

    rotations = []
    by_type = {rotation_type.value: 0 for rotation_type in RotationType}
    active = ending_soon = 0
    for rotation, user in pairs:
        by_type[RotationType(rotation.rotation_type).value] += 1
        item = rotation_snapshot(rotation, user)
        if rotation.is_active:
            active += 1
            if 0 <= rotation.days_remaining(today) <= ENDING_SOON_DAYS:
                ending_soon += 1
            item["performance"] = await rotation_performance(session, trust.tenant_id, rotation)
        rotations.append(item)

    own_active = sorted(
        (rotation for rotation, _ in pairs if rotation.is_active and rotation.user_id == trust.user_id),
        key=lambda rotation: rotation.start_date,
    )
    current = next((r for r in own_active if r.start_date <= today <= r.end_date), None)
    upcoming = next((r for r in own_active if r.start_date > today), None)

    return {
        "success": True,
        "rotations": rotations,
        "stats": {
            "total": len(rotations),
            "active": active,
            "by_type": by_type,
            "ending_soon": ending_soon,
        },
        "current_rotation": rotation_snapshot(current) if current else None,
        "next_rotation": rotation_snapshot(upcoming) if upcoming else None,
    }


def compute_schedule(
    agents: Sequence[User],
    latest_end_by_user: Dict[uuid.UUID, date],
    rotation_type: RotationType,
    today: date,
) -> List[Dict[str, Any]]:
    """
    Advisory start/end per agent.

    An agent already on an active rotation of this type continues the day after it
    ends; everyone else starts one week after the previous agent in the roster.
    """
    schedule = []
    for index, agent in enumerate(agents):
        current_end = latest_end_by_user.get(agent.id)
        if current_end is not None:
            start = current_end + timedelta(days=1)
        else:
            start = today + timedelta(days=index * STAGGER_DAYS)
        end = start + timedelta(days=rotation_type.length_days)
        schedule.append({
            "user_id": str(agent.id),
            "user_name": agent.full_name,
            "user_email": agent.email,
            "rotation_type": rotation_type.value,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "days_until_start": (start - today).days,
        })
    return schedule


async def plan_schedule(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    rotation_type: RotationType,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Propose the next rotation for every active agent. Nothing is written."""
    today = today or date.today()
    agents = (await session.exec(
        select(User)
        .where(User.client_id == tenant_id, User.role == UserRole.AGENT, User.is_active == True)  # noqa: E712
        .order_by(User.created_at, User.email)
    )).all()
    if not agents:
        raise NotFoundError("No agents found")

    rows = (await session.exec(
        select(TeamRotation.user_id, func.max(TeamRotation.end_date))
        .where(
            TeamRotation.client_id == tenant_id,
            TeamRotation.rotation_type == rotation_type,
            TeamRotation.is_active == True,  # noqa: E712
            TeamRotation.end_date >= today,
        )
        .group_by(TeamRotation.user_id)
    )).all()
    latest_end_by_user = {user_id: end_date for user_id, end_date in rows}

    return {
        "success": True,
        "schedule": compute_schedule(list(agents), latest_end_by_user, rotation_type, today),
        "rotation_type": rotation_type.value,
        "total_agents": len(agents),
    }
