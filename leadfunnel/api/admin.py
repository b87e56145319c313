"""
Platform-wide (super-admin) views across every tenant
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import get_platform_admin
from leadfunnel.models import LeadStatus, User
from leadfunnel.services import stats as stats_service

router = APIRouter()


@router.get("/leads")
async def all_leads(
    lead_status: Optional[LeadStatus] = Query(default=None, alias="status"),
    client_id: Optional[uuid.UUID] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_platform_admin),
):
    return await stats_service.platform_leads(
        session, status=lead_status, client_id=client_id, search=search, page=page, limit=limit
    )


@router.get("/stats")
async def platform_stats(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_platform_admin),
):
    return {"success": True, "data": await stats_service.platform_stats(session)}
