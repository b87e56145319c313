"""
Domain events system

Domain events represent important business events that can be published
and subscribed to by multiple parts of the system. Delivery is best-effort:
handler failures and timeouts are logged and never reach the publisher.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set
import uuid
import structlog

logger = structlog.get_logger(__name__)


class DomainEvent:
    """Base class for domain events"""

    def __init__(self, tracking_id: Optional[str] = None, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.tracking_id = tracking_id
        self.occurred_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "event_id": str(self.event_id),
            "tracking_id": self.tracking_id,
            "occurred_at": self.occurred_at.isoformat(),
            "event_type": self.__class__.__name__
        }


class LeadCreated(DomainEvent):
    """Event fired when a lead is captured or added by a tenant user"""

    def __init__(
        self,
        lead: Dict[str, Any],
        tenant_id: uuid.UUID,
        public_intake: bool = False,
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.lead = lead
        self.tenant_id = tenant_id
        self.public_intake = public_intake

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "lead": self.lead,
            "tenant_id": str(self.tenant_id),
            "public_intake": self.public_intake
        })
        return data


class LeadStatusChanged(DomainEvent):
    """Event fired when a lead moves between pipeline stages"""

    def __init__(
        self,
        lead: Dict[str, Any],
        tenant_id: uuid.UUID,
        old_status: str,
        new_status: str,
        changed_by: Optional[uuid.UUID] = None,
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.lead = lead
        self.tenant_id = tenant_id
        self.old_status = old_status
        self.new_status = new_status
        self.changed_by = changed_by

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "lead": self.lead,
            "tenant_id": str(self.tenant_id),
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed_by": str(self.changed_by) if self.changed_by else None
        })
        return data


class LeadQualified(DomainEvent):
    """Event fired when qualification data is recorded"""

    def __init__(
        self,
        lead: Dict[str, Any],
        tenant_id: uuid.UUID,
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.lead = lead
        self.tenant_id = tenant_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "lead": self.lead,
            "tenant_id": str(self.tenant_id)
        })
        return data


class LeadAssigned(DomainEvent):
    """Event fired when a lead is assigned or unassigned"""

    def __init__(
        self,
        lead: Dict[str, Any],
        tenant_id: uuid.UUID,
        assigned_to: Optional[uuid.UUID],
        assigned_by: uuid.UUID,
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.lead = lead
        self.tenant_id = tenant_id
        self.assigned_to = assigned_to
        self.assigned_by = assigned_by

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "lead": self.lead,
            "tenant_id": str(self.tenant_id),
            "assigned_to": str(self.assigned_to) if self.assigned_to else None,
            "assigned_by": str(self.assigned_by)
        })
        return data


class LeadsImported(DomainEvent):
    """Event fired after a bulk import batch finished"""

    def __init__(
        self,
        tenant_id: uuid.UUID,
        imported_by: uuid.UUID,
        summary: Dict[str, int],
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.tenant_id = tenant_id
        self.imported_by = imported_by
        self.summary = summary

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "tenant_id": str(self.tenant_id),
            "imported_by": str(self.imported_by),
            "summary": self.summary
        })
        return data


class RotationChanged(DomainEvent):
    """Event fired when a team rotation is created or updated"""

    def __init__(
        self,
        rotation_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        changes: Dict[str, Any],
        tracking_id: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(tracking_id, event_id)
        self.rotation_id = rotation_id
        self.tenant_id = tenant_id
        self.user_id = user_id
        self.changes = changes

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "rotation_id": str(self.rotation_id),
            "tenant_id": str(self.tenant_id),
            "user_id": str(self.user_id),
            "changes": self.changes
        })
        return data


class EventBus:
    """In-memory event bus with bounded, failure-isolated delivery"""

    def __init__(self, handler_timeout: float = 5.0):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._pending: Set[asyncio.Task] = set()
        self.handler_timeout = handler_timeout

    def subscribe(self, event_type: str, handler: Callable):
        """Subscribe to a specific event type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to event type: {event_type}")

    async def _deliver(self, event: DomainEvent, handler: Callable) -> bool:
        event_type = event.__class__.__name__
        handler_name = getattr(handler, "__qualname__", repr(handler))
        try:
            await asyncio.wait_for(handler(event), timeout=self.handler_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Event handler {handler_name} timed out for {event_type}",
                tracking_id=event.tracking_id,
            )
        except Exception as e:
            logger.error(
                f"Error in event handler {handler_name} for {event_type}: {e}",
                tracking_id=event.tracking_id,
                exc_info=True,
            )
        return False

    async def publish(self, event: DomainEvent) -> int:
        """Publish an event to all subscribers concurrently. Returns successful deliveries."""
        event_type = event.__class__.__name__
        handlers = list(self._subscribers.get(event_type, []))

        if not handlers:
            logger.debug(f"No subscribers for event type: {event_type}")
            return 0

        logger.info(f"Publishing event {event_type}: {event.event_id}", tracking_id=event.tracking_id)

        results = await asyncio.gather(*(self._deliver(event, handler) for handler in handlers))
        return sum(1 for delivered in results if delivered)

    def publish_nowait(self, event: DomainEvent) -> asyncio.Task:
        """Schedule delivery without blocking the caller"""
        task = asyncio.create_task(self.publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self):
        """Wait for scheduled deliveries to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
