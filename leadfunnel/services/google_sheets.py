"""
Google Sheets lead ledger

Every public submission is appended as one row so the sales team keeps a record
even when the database is unavailable. Authentication uses service account
credentials from google-auth; the access token is refreshed when it expires.
"""

import asyncio
from typing import Any, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
import httpx
import structlog

from leadfunnel.core.config import Settings

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SHEETS_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

LEDGER_COLUMNS = (
    "created_at",
    "tracking_id",
    "lead_id",
    "first_name",
    "company",
    "email",
    "phone",
    "message",
    "source",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "status",
    "priority",
)


class GoogleSheetsLedger:
    """Appends lead rows to a spreadsheet"""

    name = "google_sheets"

    def __init__(
        self,
        service_account_email: Optional[str],
        private_key: Optional[str],
        spreadsheet_id: Optional[str],
        sheet_range: str = "Leads!A:N",
        timeout: float = 5.0,
    ):
        self.service_account_email = service_account_email
        # Keys pasted into env files usually carry literal "\n"
        self.private_key = private_key.replace("\\n", "\n") if private_key else None
        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self.timeout = timeout
        self._credentials: Optional[service_account.Credentials] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleSheetsLedger":
        return cls(
            settings.GOOGLE_SERVICE_ACCOUNT_EMAIL,
            settings.GOOGLE_PRIVATE_KEY,
            settings.GOOGLE_SHEETS_ID,
            sheet_range=settings.GOOGLE_SHEETS_RANGE,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.service_account_email and self.private_key and self.spreadsheet_id)

    def _get_credentials(self) -> service_account.Credentials:
        # Raises ValueError for a malformed private key
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_info(
                {
                    "client_email": self.service_account_email,
                    "private_key": self.private_key,
                    "token_uri": TOKEN_URL,
                },
                scopes=[SHEETS_SCOPE],
            )
        return self._credentials

    async def _get_access_token(self) -> str:
        credentials = self._get_credentials()
        if not credentials.valid:
            # google-auth refreshes over a blocking transport
            await asyncio.to_thread(credentials.refresh, GoogleAuthRequest())
        return credentials.token

    @staticmethod
    def lead_row(lead: Dict[str, Any]) -> List[str]:
        attribution = lead.get("attribution") or {}
        values = dict(lead)
        values["lead_id"] = lead.get("id") or ""
        for key in ("utm_source", "utm_medium", "utm_campaign"):
            values[key] = attribution.get(key, "")
        return ["" if values.get(column) is None else str(values.get(column)) for column in LEDGER_COLUMNS]

    async def append_lead(self, lead: Dict[str, Any]) -> None:
        """Append one row; raises on any HTTP failure"""
        if not self.is_enabled:
            raise RuntimeError("Google Sheets ledger is not configured")
        async with httpx.AsyncClient() as client:
            token = await self._get_access_token()
            response = await client.post(
                f"{SHEETS_URL}/{self.spreadsheet_id}/values/{self.sheet_range}:append",
                params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
                headers={"Authorization": f"Bearer {token}"},
                json={"values": [self.lead_row(lead)]},
                timeout=self.timeout,
            )
            response.raise_for_status()
        logger.info(f"Lead {lead.get('tracking_id')} appended to ledger")

    async def test_connection(self) -> Dict[str, Any]:
        if not self.is_enabled:
            return {"success": True, "enabled": False}
        try:
            async with httpx.AsyncClient() as client:
                token = await self._get_access_token()
                response = await client.get(
                    f"{SHEETS_URL}/{self.spreadsheet_id}",
                    params={"fields": "spreadsheetId"},
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
            if response.status_code == 200:
                return {"success": True, "enabled": True}
            return {"success": False, "enabled": True, "error": f"API returned {response.status_code}"}
        except (httpx.HTTPError, GoogleAuthError, ValueError) as e:
            logger.error(f"Google Sheets connection test failed: {e}")
            return {"success": False, "enabled": True, "error": str(e)}
