"""
Bulk lead import and export

Rows are processed one by one and committed individually. A bad row is reported
with its 1-based row number and never stops the batch.
"""

import csv
import io
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from leadfunnel.core.errors import NotFoundError, ValidationError
from leadfunnel.core.events import EventBus, LeadsImported
from leadfunnel.core.trust import TrustContext
from leadfunnel.models import ActivityType, Lead, LeadStatus
from leadfunnel.schemas.lead import LeadCreate
from leadfunnel.services.leads import ensure_assignee, find_lead_by_email, record_activity

logger = structlog.get_logger(__name__)

PREVIEW_ROWS = 5

# Spreadsheet header (lower-cased) -> lead field
HEADER_ALIASES = {
    "first_name": "first_name",
    "firstname": "first_name",
    "first name": "first_name",
    "imię": "first_name",
    "imie": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last name": "last_name",
    "nazwisko": "last_name",
    "company": "company",
    "firma": "company",
    "email": "email",
    "e-mail": "email",
    "mail": "email",
    "phone": "phone",
    "telefon": "phone",
    "tel": "phone",
    "status": "status",
    "priority": "priority",
    "priorytet": "priority",
    "estimated_value": "estimated_value",
    "value": "estimated_value",
    "wartość": "estimated_value",
    "wartosc": "estimated_value",
    "closing_probability": "closing_probability",
    "probability": "closing_probability",
    "prawdopodobieństwo": "closing_probability",
    "prawdopodobienstwo": "closing_probability",
    "source": "source",
    "źródło": "source",
    "zrodlo": "source",
    "notes": "notes",
    "notatki": "notes",
    "uwagi": "notes",
}

IMPORT_UPDATABLE_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "phone",
    "priority",
    "estimated_value",
    "closing_probability",
    "source",
    "notes",
    "next_action",
    "assigned_to",
)


def normalize_header(header: str) -> Optional[str]:
    return HEADER_ALIASES.get(header.strip().lower())


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Excel on Polish Windows exports cp1250
        return content.decode("cp1250")


def _to_number(value: str, cast):
    cleaned = value.replace("\u00a0", "").replace(" ", "").replace(",", ".")
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        # Leave it for row validation to report
        return value
    if not math.isfinite(number):
        return value
    return cast(number)


def parse_csv(content: bytes) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Parse an uploaded CSV into lead-shaped dicts"""
    text = _decode(content)
    if not text.strip():
        raise ValidationError("CSV file is empty", {"file": ["CSV file is empty"]})

    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    headers = [header.strip() for header in (reader.fieldnames or [])]
    if not any(normalize_header(header) for header in headers):
        raise ValidationError("No recognizable columns in CSV", {"file": ["No recognizable columns in CSV"]})

    rows: List[Dict[str, Any]] = []
    for raw in reader:
        row: Dict[str, Any] = {}
        for header, value in raw.items():
            if header is None:
                continue
            field_name = normalize_header(header)
            if field_name is None:
                continue
            value = (value or "").strip()
            if field_name == "estimated_value":
                value = _to_number(value, float)
            elif field_name == "closing_probability":
                value = _to_number(value, int)
            elif field_name in ("status", "priority"):
                value = value.lower() or None
            row[field_name] = value
        if not any(v not in (None, "") for v in row.values()):
            continue
        row.setdefault("status", None)
        row.setdefault("priority", None)
        row["status"] = row["status"] or LeadStatus.NEW.value
        row["priority"] = row["priority"] or "medium"
        rows.append(row)
    return headers, rows


def _echo_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a rejected row that is safe to return as JSON"""
    return {
        key: str(value) if isinstance(value, float) and not math.isfinite(value) else value
        for key, value in raw.items()
    }


def _row_error(exc: PydanticValidationError) -> str:
    messages = []
    for error in exc.errors():
        field_name = ".".join(str(part) for part in error.get("loc", ())) or "row"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{field_name}: {message}")
    return "; ".join(messages)


async def _update_existing(session: AsyncSession, lead: Lead, data: LeadCreate, trust: TrustContext) -> None:
    values = data.model_dump(exclude_unset=True)
    for field_name in IMPORT_UPDATABLE_FIELDS:
        if values.get(field_name) is not None:
            setattr(lead, field_name, values[field_name])
    if "status" in values and values["status"] != lead.status:
        # Raises ValueError for leads that already left the pipeline
        lead.transition_to(values["status"])
    if lead.is_terminal():
        lead.closing_probability = 100 if lead.status == LeadStatus.CLOSED else 0
    lead.updated_at = datetime.utcnow()
    session.add(lead)
    record_activity(
        session,
        client_id=trust.tenant_id,
        lead_id=lead.id,
        user_id=trust.user_id,
        type=ActivityType.NOTE,
        description="Lead updated from import",
        details={"fields": sorted(k for k, v in values.items() if v is not None)},
    )


async def _insert(session: AsyncSession, data: LeadCreate, trust: TrustContext) -> Lead:
    values = data.model_dump()
    values["email"] = values["email"].lower()
    values["source"] = values.get("source") or "import"
    lead = Lead(client_id=trust.tenant_id, **values)
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
        description="Lead imported",
        details={"source": lead.source},
    )
    return lead


async def import_leads(
    session: AsyncSession,
    trust: TrustContext,
    rows: Iterable[Dict[str, Any]],
    bus: EventBus,
    skip_duplicates: bool = True,
    update_existing: bool = False,
    tracking_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Import rows for the caller's tenant; returns counts and per-row errors"""
    total = imported = updated = skipped = 0
    errors: List[Dict[str, Any]] = []

    for index, raw in enumerate(rows):
        row_number = index + 1
        total += 1

        try:
            data = LeadCreate.model_validate(raw)
        except PydanticValidationError as e:
            errors.append({"row": row_number, "error": _row_error(e), "data": _echo_row(raw)})
            continue

        try:
            if data.assigned_to is not None:
                await ensure_assignee(session, trust.tenant_id, data.assigned_to)

            existing = await find_lead_by_email(session, trust.tenant_id, data.email)
            if existing is not None:
                if update_existing:
                    await _update_existing(session, existing, data, trust)
                    await session.commit()
                    updated += 1
                elif skip_duplicates:
                    skipped += 1
                else:
                    errors.append({
                        "row": row_number,
                        "error": f"Lead with email {data.email} already exists",
                        "data": _echo_row(raw),
                    })
                continue

            await _insert(session, data, trust)
            await session.commit()
            imported += 1
        except NotFoundError as e:
            errors.append({"row": row_number, "error": e.message, "data": _echo_row(raw)})
        except ValueError as e:
            await session.rollback()
            errors.append({"row": row_number, "error": str(e), "data": _echo_row(raw)})
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Import row {row_number} failed: {e}", tracking_id=tracking_id)
            errors.append({"row": row_number, "error": "Database error while saving row", "data": _echo_row(raw)})

    summary = {
        "total": total,
        "imported": imported,
        "updated": updated,
        "skipped": skipped,
        "errors": len(errors),
    }

    try:
        record_activity(
            session,
            client_id=trust.tenant_id,
            user_id=trust.user_id,
            type=ActivityType.NOTE,
            description=(
                f"Import: {imported} imported, {updated} updated, "
                f"{skipped} skipped, {len(errors)} errors"
            ),
            details=summary,
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to record import summary: {e}", tracking_id=tracking_id)

    logger.info(f"Import finished for tenant {trust.tenant_id}: {summary}")
    bus.publish_nowait(LeadsImported(trust.tenant_id, trust.user_id, summary, tracking_id=tracking_id))

    return {
        "success": True,
        "total": total,
        "imported": imported,
        "updated": updated,
        "skipped": skipped,
        "errors": errors,
    }


EXPORT_COLUMNS = (
    "id",
    "first_name",
    "last_name",
    "company",
    "email",
    "phone",
    "status",
    "priority",
    "source",
    "estimated_value",
    "closing_probability",
    "assigned_to",
    "notes",
    "created_at",
    "updated_at",
)


async def export_leads_csv(session: AsyncSession, tenant_id) -> str:
    """All of a tenant's leads as CSV text"""
    leads = (await session.exec(
        select(Lead).where(Lead.client_id == tenant_id).order_by(Lead.created_at)
    )).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for lead in leads:
        data = lead.model_dump(mode="json")
        writer.writerow(["" if data.get(column) is None else data.get(column) for column in EXPORT_COLUMNS])
    return buffer.getvalue()
