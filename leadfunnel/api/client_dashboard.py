"""
Tenant dashboard statistics
"""

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import require_permission
from leadfunnel.core.permissions import Permission
from leadfunnel.core.trust import TrustContext
from leadfunnel.services.stats import tenant_dashboard

router = APIRouter()


@router.get("/stats")
async def dashboard_stats(
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.REPORTS_VIEW)),
):
    return {"success": True, "data": await tenant_dashboard(session, trust.tenant_id)}
