"""
# Mail Manager

Delivers transactional emails through an HTTP mail relay with **httpx**.

Templates live on the relay; this manager only names the template and passes
its context. A message is posted as:

```json
{
  "from": "Be My Guide <no-reply@bemyguide.app>",
  "to": "friend@example.com",
  "subject": "BMG - Vous avez été invité à un voyage",
  "template": "trip-invitation",
  "context": {"name": "Alice", "url": "...", "registeredUrl": "..."}
}
```

When `MAIL_API_URL` is empty (local development, tests) messages are logged
and dropped instead of sent.
"""

from typing import Any, Dict, Optional

import httpx

from be_my_guide.config import settings
from be_my_guide.errors import MailError
from be_my_guide.managers.logging_manager import get_logger

logger = get_logger(prefix="[MailManager]")

TRIP_INVITATION_TEMPLATE = "trip-invitation"
TRIP_INVITATION_SUBJECT = "BMG - Vous avez été invité à un voyage"


class MailManager:
    """Sends templated emails to the configured relay."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        frontend_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = settings.MAIL_API_URL if api_url is None else api_url
        if api_key is None and settings.MAIL_API_KEY:
            api_key = settings.MAIL_API_KEY.get_secret_value()
        self.api_key = api_key
        self.sender = sender or settings.MAIL_SENDER
        self.frontend_base_url = (frontend_base_url or settings.FRONTEND_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.MAIL_TIMEOUT
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_url.strip())

    def trip_invitation_url(self, trip_id: str) -> str:
        return f"{self.frontend_base_url}/trip/invitation?id={trip_id}"

    def registration_url(self) -> str:
        return f"{self.frontend_base_url}/register"

    async def send_mail(self, to: str, subject: str, template: str, context: Dict[str, Any]) -> bool:
        """
        Post one message to the relay.

        Returns:
            bool: `True` if the relay accepted it, `False` if mail is disabled.

        Raises:
            MailError: If the relay is unreachable or answers with an error status.
        """
        if not self.enabled:
            logger.info(f"Mail relay not configured, dropping '{template}' mail to {to}")
            return False

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"from": self.sender, "to": to, "subject": subject, "template": template, "context": context}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MailError(f"Mail relay rejected '{template}' mail to {to}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise MailError(f"Mail relay unreachable while sending '{template}' mail to {to}: {e}") from e

        logger.info(f"Sent '{template}' mail to {to}")
        return True

    async def send_trip_invitation(self, inviter_name: str, recipient_email: str, trip_id: str) -> bool:
        """Invite `recipient_email` to join a trip, with a link to register if they have no account."""
        return await self.send_mail(
            to=recipient_email,
            subject=TRIP_INVITATION_SUBJECT,
            template=TRIP_INVITATION_TEMPLATE,
            context={
                "name": inviter_name,
                "url": self.trip_invitation_url(trip_id),
                "registeredUrl": self.registration_url(),
            },
        )
