"""
Derived pipeline figures for tenant dashboards and the platform view
"""

from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from leadfunnel.models import Activity, Lead, LeadStatus, TERMINAL_STATUSES, Tenant

FUNNEL_STAGES = (
    LeadStatus.NEW,
    LeadStatus.CONTACTED,
    LeadStatus.QUALIFIED,
    LeadStatus.PROPOSAL,
    LeadStatus.CLOSED,
)


def conversion_rate(closed: int, total: int) -> float:
    """Closed share of all leads as a percentage with one decimal; 0 without leads"""
    if total <= 0:
        return 0.0
    return round(closed / total * 100, 1)


def percentage(part: int, total: int) -> float:
    return 0.0 if total <= 0 else round(part / total * 100, 1)


async def status_breakdown(session: AsyncSession, tenant_id: Optional[uuid.UUID]) -> Dict[LeadStatus, Dict[str, float]]:
    """Count and value of leads per status, for one tenant or across all when tenant_id is None"""
    query = select(
        Lead.status,
        func.count(Lead.id),
        func.coalesce(func.sum(Lead.estimated_value), 0),
    )
    if tenant_id is not None:
        query = query.where(Lead.client_id == tenant_id)
    rows = (await session.exec(query.group_by(Lead.status))).all()

    breakdown = {status: {"count": 0, "value": 0.0} for status in LeadStatus}
    for status, count, value in rows:
        breakdown[LeadStatus(status)] = {"count": count, "value": float(value or 0)}
    return breakdown


def summarize(breakdown: Dict[LeadStatus, Dict[str, float]]) -> Dict[str, Any]:
    total = sum(int(item["count"]) for item in breakdown.values())
    closed = int(breakdown[LeadStatus.CLOSED]["count"])
    lost = int(breakdown[LeadStatus.LOST]["count"])
    closed_value = breakdown[LeadStatus.CLOSED]["value"]
    pipeline_value = sum(
        item["value"] for status, item in breakdown.items() if status not in TERMINAL_STATUSES
    )

    return {
        "total_leads": total,
        "new_leads": int(breakdown[LeadStatus.NEW]["count"]),
        "active_leads": total - closed - lost,
        "qualified_leads": int(breakdown[LeadStatus.QUALIFIED]["count"]),
        "closed_deals": closed,
        "lost_deals": lost,
        "pipeline_value": pipeline_value,
        "closed_value": closed_value,
        "conversion_rate": conversion_rate(closed, total),
        "avg_deal_size": round(closed_value / closed, 2) if closed else 0.0,
        "sales_funnel": [
            {
                "stage": stage.value,
                "count": int(breakdown[stage]["count"]),
                "percentage": percentage(int(breakdown[stage]["count"]), total),
            }
            for stage in FUNNEL_STAGES
        ],
    }


async def tenant_dashboard(session: AsyncSession, tenant_id: uuid.UUID, recent: int = 10) -> Dict[str, Any]:
    stats = summarize(await status_breakdown(session, tenant_id))
    activities = (await session.exec(
        select(Activity)
        .where(Activity.client_id == tenant_id)
        .order_by(Activity.created_at.desc())
        .limit(recent)
    )).all()
    stats["recent_activities"] = [
        {
            "id": str(activity.id),
            "lead_id": str(activity.lead_id) if activity.lead_id else None,
            "type": activity.type.value,
            "description": activity.description,
            "created_at": activity.created_at.isoformat(),
        }
        for activity in activities
    ]
    return stats


async def platform_stats(session: AsyncSession) -> Dict[str, Any]:
    stats = summarize(await status_breakdown(session, None))
    per_tenant = (await session.exec(
        select(Tenant.id, Tenant.name, func.count(Lead.id))
        .join(Lead, Lead.client_id == Tenant.id, isouter=True)
        .group_by(Tenant.id, Tenant.name)
        .order_by(Tenant.name)
    )).all()
    stats["tenants"] = [
        {"client_id": str(tenant_id), "name": name, "total_leads": count}
        for tenant_id, name, count in per_tenant
    ]
    return stats


async def platform_leads(
    session: AsyncSession,
    status: Optional[LeadStatus] = None,
    client_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    """Leads of every tenant with the owning tenant's name and domain"""
    conditions = []
    if status is not None:
        conditions.append(Lead.status == status)
    if client_id is not None:
        conditions.append(Lead.client_id == client_id)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(
            func.lower(Lead.company).like(pattern) | func.lower(Lead.email).like(pattern)
        )

    total = (await session.exec(select(func.count(Lead.id)).where(*conditions))).one()
    rows = (await session.exec(
        select(Lead, Tenant)
        .join(Tenant, Tenant.id == Lead.client_id)
        .where(*conditions)
        .order_by(Lead.created_at.desc(), Lead.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )).all()

    leads: List[Dict[str, Any]] = []
    for lead, tenant in rows:
        item = lead.model_dump(mode="json")
        item["client"] = {"name": tenant.name, "domain": tenant.domain}
        leads.append(item)

    return {"success": True, "leads": leads, "total": total, "page": page, "limit": limit}
