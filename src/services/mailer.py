"""
Outbound email via an HTTP mail relay.

The relay receives ``{from, to, subject, template, data}`` and renders the
template itself.  Delivery is best-effort: failures are logged and never
roll back the request that triggered them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from src.config import settings
from src.domain.errors import UpstreamFailure

logger = logging.getLogger(__name__)

SUBJECTS = {
    "email_verification": "Verify your email",
    "password_reset": "Password reset request",
    "booking_confirmation": "Your booking",
    "notification": "Notification",
}


class Mailer:
    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_url = settings.mail_api_url if api_url is None else api_url
        self.api_key = settings.mail_api_key if api_key is None else api_key
        self.sender = sender or settings.mail_from
        self.timeout = timeout or settings.http_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.api_url)

    async def send(
        self,
        to: str,
        template: str,
        data: dict[str, Any],
        subject: Optional[str] = None,
        *,
        strict: bool = False,
    ) -> bool:
        """Deliver one email.  With ``strict`` a failure raises instead."""
        if not self.configured:
            if strict:
                raise UpstreamFailure("Mail relay is not configured")
            logger.info("Mail relay not configured; skipping %s email to %s", template, to)
            return False

        payload = {
            "from": self.sender,
            "to": to,
            "subject": subject or SUBJECTS.get(template, SUBJECTS["notification"]),
            "template": template,
            "data": data,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Email %s to %s failed: %s", template, to, exc)
            if strict:
                raise UpstreamFailure(f"Email delivery failed: {exc}") from exc
            return False

        logger.info("Email %s sent to %s", template, to)
        return True


def get_mailer() -> Mailer:
    return Mailer()
