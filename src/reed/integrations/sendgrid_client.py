"""SendGrid v3 mail-send client used by the transactional e-mail relay."""

from __future__ import annotations

from typing import Any

import httpx

from reed.config import settings


class SendGridError(Exception):
    """Raised when SendGrid refuses a message or cannot be reached."""


def build_mail_payload(
    to: str,
    subject: str,
    from_email: str,
    text: str | None = None,
    html: str | None = None,
) -> dict[str, Any]:
    """Build the /mail/send body: one recipient, plain part before HTML."""
    content = []
    if text:
        content.append({"type": "text/plain", "value": text})
    if html:
        content.append({"type": "text/html", "value": html})
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": from_email},
        "subject": subject,
        "content": content,
    }


class SendGridClient:
    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self.from_email = settings.SENDGRID_FROM_EMAIL if from_email is None else from_email
        self.api_url = (settings.SENDGRID_API_URL if api_url is None else api_url).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        to: str,
        subject: str,
        text: str | None = None,
        html: str | None = None,
    ) -> None:
        """Send one message. Raises SendGridError on any failure."""
        if not self.configured:
            raise SendGridError("SendGrid not configured")

        payload = build_mail_payload(to, subject, self.from_email, text=text, html=html)
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/mail/send",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as exc:
            raise SendGridError(f"Cannot reach SendGrid: {exc}") from exc

        if response.is_error:
            raise SendGridError(f"SendGrid error: {response.text}")
