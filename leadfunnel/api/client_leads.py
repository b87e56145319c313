"""
Tenant lead management endpoints (client portal API)

The tenant is always the one in the request's TrustContext. Lead ids from
another tenant behave exactly like unknown ids.
"""

from typing import Optional
import math
import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.config import get_settings
from leadfunnel.core.database import get_session
from leadfunnel.core.dependencies import get_event_bus, get_tracking_id, require_permission
from leadfunnel.core.errors import AuthorizationError, ValidationError
from leadfunnel.core.events import EventBus
from leadfunnel.core.permissions import Permission
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import LeadPriority, LeadStatus
from leadfunnel.schemas.lead import (
    ActivityCreate,
    AssignmentUpdate,
    BulkUpdateRequest,
    ImportRequest,
    LeadCreate,
    LeadPatchRequest,
    LeadUpdate,
    PriorityUpdate,
)
from leadfunnel.services import lead_import, leads as lead_service

logger = structlog.get_logger(__name__)
router = APIRouter()


def _check_assign_permission(trust: TrustContext, changes: dict):
    if "assigned_to" in changes and not trust.can(Permission.LEAD_ASSIGN):
        raise AuthorizationError(f"Permission required: {Permission.LEAD_ASSIGN.value}")


@router.get("")
async def list_leads(
    lead_status: Optional[LeadStatus] = Query(default=None, alias="status"),
    priority: Optional[LeadPriority] = None,
    assigned_to: Optional[uuid.UUID] = None,
    source: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at", pattern="^(created_at|updated_at|company|estimated_value|priority|status)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_VIEW)),
):
    """List the tenant's leads with filters and paging"""
    items, total = await lead_service.list_leads(
        session,
        trust.tenant_id,
        status=lead_status,
        priority=priority,
        assigned_to=assigned_to,
        source=source,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "success": True,
        "data": [lead_service.lead_snapshot(lead) for lead in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_CREATE)),
):
    """Add a lead manually"""
    if payload.assigned_to is not None:
        _check_assign_permission(trust, {"assigned_to": payload.assigned_to})
    lead = await lead_service.create_lead(session, trust, payload, bus, tracking_id)
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.patch("")
async def patch_lead(
    payload: LeadPatchRequest,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_UPDATE)),
):
    """Partial update with the lead id in the body"""
    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    _check_assign_permission(trust, changes)
    lead = await lead_service.update_lead(session, trust, payload.id, changes, bus, tracking_id)
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.post("/bulk-update")
async def bulk_update(
    payload: BulkUpdateRequest,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_UPDATE)),
):
    _check_assign_permission(trust, payload.updates.model_dump(exclude_unset=True))
    return await lead_service.bulk_update_leads(session, trust, payload, bus, tracking_id)


@router.post("/import")
async def import_leads(
    payload: ImportRequest,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_IMPORT)),
):
    """Import already-parsed rows"""
    max_rows = get_settings().IMPORT_MAX_ROWS
    if len(payload.leads) > max_rows:
        raise ValidationError(
            f"At most {max_rows} leads per import",
            {"leads": [f"At most {max_rows} leads per import"]},
        )
    return await lead_import.import_leads(
        session,
        trust,
        payload.leads,
        bus,
        skip_duplicates=payload.skip_duplicates,
        update_existing=payload.update_existing,
        tracking_id=tracking_id,
    )


@router.put("/import")
async def preview_import(
    file: UploadFile = File(...),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_IMPORT)),
):
    """Parse an uploaded CSV and return the rows for review"""
    settings = get_settings()
    filename = (file.filename or "").lower()
    if not filename.endswith(".csv") and file.content_type not in ("text/csv", "application/vnd.ms-excel"):
        raise ValidationError("Only CSV files are supported", {"file": ["Only CSV files are supported"]})

    content = await file.read(settings.IMPORT_MAX_FILE_BYTES + 1)
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise ValidationError("File is too large", {"file": ["File is too large (max 10MB)"]})

    headers, rows = lead_import.parse_csv(content)
    logger.info(f"CSV preview parsed {len(rows)} rows for tenant {trust.tenant_id}")
    return {
        "success": True,
        "total": len(rows),
        "headers": headers,
        "preview": rows[:lead_import.PREVIEW_ROWS],
        "leads": rows,
    }


@router.get("/export")
async def export_leads(
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.REPORTS_VIEW)),
):
    content = await lead_import.export_leads_csv(session, trust.tenant_id)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="leads.csv"'},
    )


@router.get("/{lead_id}")
async def get_lead(
    lead_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_VIEW)),
):
    lead = await lead_service.get_lead(session, trust.tenant_id, lead_id)
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.patch("/{lead_id}")
async def update_lead(
    lead_id: uuid.UUID,
    payload: LeadUpdate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_UPDATE)),
):
    changes = payload.model_dump(exclude_unset=True)
    _check_assign_permission(trust, changes)
    lead = await lead_service.update_lead(session, trust, lead_id, changes, bus, tracking_id)
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.patch("/{lead_id}/priority")
async def update_priority(
    lead_id: uuid.UUID,
    payload: PriorityUpdate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_UPDATE)),
):
    lead = await lead_service.update_lead(
        session, trust, lead_id, {"priority": payload.priority}, bus, tracking_id
    )
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.patch("/{lead_id}/assign")
async def assign_lead(
    lead_id: uuid.UUID,
    payload: AssignmentUpdate,
    session: AsyncSession = Depends(get_session),
    bus: EventBus = Depends(get_event_bus),
    tracking_id: str = Depends(get_tracking_id),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_ASSIGN)),
):
    lead = await lead_service.update_lead(
        session, trust, lead_id, {"assigned_to": payload.assigned_to}, bus, tracking_id
    )
    return {"success": True, "data": lead_service.lead_snapshot(lead)}


@router.get("/{lead_id}/activities")
async def list_activities(
    lead_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.LEAD_VIEW)),
):
    activities = await lead_service.list_activities(session, trust.tenant_id, lead_id)
    return {"success": True, "data": [lead_service.activity_snapshot(a) for a in activities]}


@router.post("/{lead_id}/activities", status_code=status.HTTP_201_CREATED)
async def log_activity(
    lead_id: uuid.UUID,
    payload: ActivityCreate,
    session: AsyncSession = Depends(get_session),
    trust: TrustContext = Depends(require_permission(Permission.ACTIVITY_LOG)),
):
    activity = await lead_service.log_activity(session, trust, lead_id, payload)
    return {"success": True, "data": lead_service.activity_snapshot(activity)}
