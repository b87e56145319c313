"""
HubSpot CRM contact sync
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from leadfunnel.core.config import Settings

logger = structlog.get_logger(__name__)


class HubSpotService:
    """Creates CRM contacts through the HubSpot v3 objects API"""

    name = "hubspot"

    def __init__(self, access_token: Optional[str], base_url: str = "https://api.hubapi.com", timeout: float = 5.0):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "HubSpotService":
        return cls(
            settings.HUBSPOT_ACCESS_TOKEN,
            base_url=settings.HUBSPOT_BASE_URL,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.access_token)

    @staticmethod
    def contact_properties(lead: Dict[str, Any]) -> Dict[str, Any]:
        attribution = lead.get("attribution") or {}
        properties = {
            "email": lead.get("email"),
            "firstname": lead.get("first_name"),
            "lastname": lead.get("last_name"),
            "company": lead.get("company"),
            "phone": lead.get("phone"),
            "message": lead.get("message"),
            "lifecyclestage": "lead",
            "lead_source": lead.get("source"),
            "hs_lead_status": "NEW",
        }
        properties.update(attribution)
        return {key: value for key, value in properties.items() if value not in (None, "")}

    async def create_contact(self, lead: Dict[str, Any]) -> Optional[str]:
        """Create a contact; returns the HubSpot id. A 409 means it already exists."""
        if not self.is_enabled:
            return None
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.base_url}/crm/v3/objects/contacts",
                headers=self.headers,
                json={"properties": self.contact_properties(lead)},
                timeout=self.timeout,
            )
        if response.status_code == 409:
            logger.info(f"HubSpot contact already exists for lead {lead.get('id')}")
            return None
        response.raise_for_status()
        contact_id = response.json().get("id")
        logger.info(f"HubSpot contact {contact_id} created for lead {lead.get('id')}")
        return contact_id

    async def test_connection(self) -> Dict[str, Any]:
        if not self.is_enabled:
            return {"success": True, "enabled": False}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/crm/v3/objects/contacts",
                    headers=self.headers,
                    params={"limit": 1},
                    timeout=self.timeout,
                )
            if response.status_code == 200:
                return {"success": True, "enabled": True}
            return {"success": False, "enabled": True, "error": f"API returned {response.status_code}"}
        except httpx.HTTPError as e:
            logger.error(f"HubSpot connection test failed: {e}")
            return {"success": False, "enabled": True, "error": str(e)}
