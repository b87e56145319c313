"""
Slack incoming-webhook alerts
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from leadfunnel.core.config import Settings

logger = structlog.get_logger(__name__)


class SlackService:
    """Posts lead alerts to a Slack incoming webhook"""

    name = "slack"

    def __init__(self, webhook_url: Optional[str], timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SlackService":
        return cls(settings.SLACK_WEBHOOK_URL, timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)

    @property
    def is_enabled(self) -> bool:
        return bool(self.webhook_url)

    async def post(self, payload: Dict[str, Any]) -> None:
        if not self.is_enabled:
            return
        async with httpx.AsyncClient() as client:
            response = await client.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()

    async def send_lead_alert(self, lead: Dict[str, Any]) -> None:
        text = f":tada: Nowy lead: *{lead.get('first_name')}* z *{lead.get('company')}*"
        await self.post({
            "text": text,
            "blocks": [
                {"type": "section", "text": {"type": "mrkdwn", "text": text}},
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*E-mail:*\n{lead.get('email')}"},
                        {"type": "mrkdwn", "text": f"*Telefon:*\n{lead.get('phone') or '-'}"},
                        {"type": "mrkdwn", "text": f"*Źródło:*\n{lead.get('source')}"},
                        {"type": "mrkdwn", "text": f"*Priorytet:*\n{lead.get('priority')}"},
                    ],
                },
            ],
        })

    async def send_text(self, text: str) -> None:
        await self.post({"text": text})

    async def test_connection(self) -> Dict[str, Any]:
        """
        Probe the webhook with an empty payload.

        Slack answers 400 "no_text" for a live webhook and 403/404 for a revoked one,
        so nothing is posted to the channel.
        """
        if not self.is_enabled:
            return {"success": True, "enabled": False}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.webhook_url, json={}, timeout=self.timeout)
            if response.status_code in (200, 400):
                return {"success": True, "enabled": True}
            return {"success": False, "enabled": True, "error": f"Webhook returned {response.status_code}"}
        except httpx.HTTPError as e:
            logger.error(f"Slack connection test failed: {e}")
            return {"success": False, "enabled": True, "error": str(e)}
