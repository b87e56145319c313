"""
Team rotation endpoints (client portal API)
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import get_event_bus, get_tracking_id, require_permission
from leadfunnel.core.events import EventBus
from leadfunnel.core.permissions import Permission
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import RotationType
from leadfunnel.schemas.rotation import RotationCreate, RotationUpdate
from leadfunnel.services import rotations as rotation_service

router = APIRouter()


@router.get("")
async def list_rotations(
    rotation_type: Optional[RotationType] = None,
    is_active: Optional[bool] = None,
    user_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.ROTATION_VIEW)),
):
    """Rotations with team stats and per-rotation performance"""
    return await rotation_service.list_rotations(
        session, trust, rotation_type=rotation_type, is_active=is_active, user_id=user_id
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rotation(
    payload: RotationCreate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.ROTATION_MANAGE)),
):
    rotation = await rotation_service.create_rotation(session, trust, payload, bus, tracking_id)
    return {"success": True, "data": rotation_service.rotation_snapshot(rotation)}


@router.patch("")
async def update_rotation(
    payload: RotationUpdate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.ROTATION_MANAGE)),
):
    rotation = await rotation_service.update_rotation(session, trust, payload, bus, tracking_id)
    return {"success": True, "data": rotation_service.rotation_snapshot(rotation)}


@router.put("")
async def compute_schedule(
    rotation_type: RotationType = Query(..., alias="type"),
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.ROTATION_MANAGE)),
):
    """Suggested next rotation for every agent; nothing is saved"""
    return await rotation_service.plan_schedule(session, trust.tenant_id, rotation_type)
