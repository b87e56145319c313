"""
Transactional email over SMTP
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

import structlog

from leadfunnel.core.config import Settings

logger = structlog.get_logger(__name__)


class EmailService:
    """SMTP sender. Blocking smtplib calls run in a worker thread."""

    name = "email"

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        from_address: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailService":
        return cls(
            host=settings.EMAIL_HOST,
            port=settings.EMAIL_PORT,
            user=settings.EMAIL_USER,
            password=settings.EMAIL_PASSWORD,
            from_address=settings.EMAIL_FROM or settings.EMAIL_USER,
            use_ssl=settings.EMAIL_USE_SSL,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.host and self.from_address)

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            server.starttls()
        if self.user and self.password:
            server.login(self.user, self.password)
        return server

    def _send_sync(self, to: List[str], subject: str, text: str, html: Optional[str]) -> None:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_address
        msg["To"] = ", ".join(to)
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain", "utf-8"))
        if html:
            msg.attach(MIMEText(html, "html", "utf-8"))

        with self._connect() as server:
            server.send_message(msg)

    async def send(self, to: List[str], subject: str, text: str, html: Optional[str] = None) -> None:
        """Send a message; raises smtplib/OS errors to the caller"""
        if not self.is_enabled:
            logger.debug("Email disabled, skipping send")
            return
        await asyncio.to_thread(self._send_sync, to, subject, text, html)
        logger.info(f"Email sent to {len(to)} recipient(s): {subject}")

    async def send_lead_notification(self, lead: Dict[str, Any], recipients: List[str]) -> None:
        """Tell the sales team about a new lead"""
        subject = f"Nowy lead: {lead.get('company')} ({lead.get('first_name')})"
        lines = [
            f"Imię: {lead.get('first_name')} {lead.get('last_name') or ''}".rstrip(),
            f"Firma: {lead.get('company')}",
            f"E-mail: {lead.get('email')}",
            f"Telefon: {lead.get('phone') or '-'}",
            f"Źródło: {lead.get('source')}",
            "",
            lead.get("message") or "",
        ]
        await self.send(recipients, subject, "\n".join(lines))

    async def send_lead_confirmation(self, lead: Dict[str, Any]) -> None:
        """Thank the submitter for getting in touch"""
        subject = "Dziękujemy za kontakt"
        text = (
            f"Dzień dobry {lead.get('first_name')},\n\n"
            "dziękujemy za wiadomość. Skontaktujemy się z Tobą w ciągu 24 godzin.\n"
        )
        await self.send([lead["email"]], subject, text)

    def _probe_sync(self) -> None:
        with self._connect() as server:
            server.noop()

    async def test_connection(self) -> Dict[str, Any]:
        """Open an SMTP session and issue NOOP"""
        if not self.is_enabled:
            return {"success": True, "enabled": False}
        try:
            await asyncio.wait_for(asyncio.to_thread(self._probe_sync), timeout=self.timeout)
            return {"success": True, "enabled": True}
        except (smtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            logger.error(f"SMTP connection test failed: {e}")
            return {"success": False, "enabled": True, "error": str(e)}
