"""
Transactional email through the Resend HTTP API.
"""

from typing import Optional

import httpx

from tourbook.core.config import Settings, get_settings
from tourbook.core.logging import get_logger

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.RESEND_API_KEY)

    async def send(self, to: str, subject: str, html: str) -> Optional[str]:
        """Send one email; returns the provider message id, or None when email is disabled."""
        if not self.enabled:
            logger.info("email_skipped", reason="not_configured", subject=subject)
            return None

        payload = {
            "from": self.settings.EMAIL_FROM,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self.settings.RESEND_API_KEY}"}

        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                response = await client.post(self.settings.RESEND_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email request failed: {e}") from e

        if response.status_code >= 400:
            raise EmailDeliveryError(f"Email API returned HTTP {response.status_code}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info("email_sent", subject=subject, message_id=message_id)
        return message_id


def get_email_client() -> EmailClient:
    return EmailClient(get_settings())
