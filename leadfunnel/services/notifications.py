"""
Notification fan-out

Subscribes the outbound channels to lead events on the event bus. Each handler is
delivered independently by the bus, so one slow or failing channel never affects
another or the request that produced the event.
"""

from dataclasses import dataclass, field
from typing import List

import structlog

from leadfunnel.core.config import Settings
from leadfunnel.core.events import (
    EventBus,
    LeadAssigned,
    LeadCreated,
    LeadsImported,
    LeadStatusChanged,
)
from leadfunnel.services.google_sheets import GoogleSheetsLedger
from leadfunnel.services.hubspot import HubSpotService
from leadfunnel.services.mailer import EmailService
from leadfunnel.services.slack import SlackService

logger = structlog.get_logger(__name__)


@dataclass
class Integrations:
    """Outbound collaborators configured for this process"""
    email: EmailService
    slack: SlackService
    hubspot: HubSpotService
    ledger: GoogleSheetsLedger
    team_recipients: List[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Integrations":
        recipients = [
            address.strip()
            for address in (settings.LEAD_NOTIFICATION_EMAIL or "").split(",")
            if address.strip()
        ]
        return cls(
            email=EmailService.from_settings(settings),
            slack=SlackService.from_settings(settings),
            hubspot=HubSpotService.from_settings(settings),
            ledger=GoogleSheetsLedger.from_settings(settings),
            team_recipients=recipients,
        )


class LeadNotifier:
    """Event handlers that push lead events to email, Slack and HubSpot"""

    def __init__(self, integrations: Integrations):
        self.integrations = integrations

    def register(self, bus: EventBus):
        bus.subscribe(LeadCreated.__name__, self.notify_team)
        bus.subscribe(LeadCreated.__name__, self.confirm_submitter)
        bus.subscribe(LeadCreated.__name__, self.alert_slack)
        bus.subscribe(LeadCreated.__name__, self.sync_hubspot)
        bus.subscribe(LeadStatusChanged.__name__, self.announce_status_change)
        bus.subscribe(LeadAssigned.__name__, self.announce_assignment)
        bus.subscribe(LeadsImported.__name__, self.announce_import)

    async def notify_team(self, event: LeadCreated):
        email = self.integrations.email
        if not email.is_enabled or not self.integrations.team_recipients:
            return
        await email.send_lead_notification(event.lead, self.integrations.team_recipients)

    async def confirm_submitter(self, event: LeadCreated):
        # Only people who filled in the public form asked to hear back
        if not event.public_intake or not self.integrations.email.is_enabled:
            return
        await self.integrations.email.send_lead_confirmation(event.lead)

    async def alert_slack(self, event: LeadCreated):
        if not self.integrations.slack.is_enabled:
            return
        await self.integrations.slack.send_lead_alert(event.lead)

    async def sync_hubspot(self, event: LeadCreated):
        if not event.public_intake or not self.integrations.hubspot.is_enabled:
            return
        await self.integrations.hubspot.create_contact(event.lead)

    async def announce_status_change(self, event: LeadStatusChanged):
        if not self.integrations.slack.is_enabled:
            return
        lead = event.lead
        await self.integrations.slack.send_text(
            f"Lead {lead.get('company')} ({lead.get('email')}): {event.old_status} → {event.new_status}"
        )

    async def announce_assignment(self, event: LeadAssigned):
        if not self.integrations.slack.is_enabled or event.assigned_to is None:
            return
        await self.integrations.slack.send_text(
            f"Lead {event.lead.get('company')} assigned to user {event.assigned_to}"
        )

    async def announce_import(self, event: LeadsImported):
        if not self.integrations.slack.is_enabled:
            return
        summary = event.summary
        await self.integrations.slack.send_text(
            f"Import finished: {summary.get('imported', 0)} imported, "
            f"{summary.get('updated', 0)} updated, {summary.get('skipped', 0)} skipped, "
            f"{summary.get('errors', 0)} errors"
        )
