from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from newsletter.domain.errors import EmailTransportError
from newsletter.domain.subscriber_email import SubscriberEmail
from newsletter.settings import EmailClientSettings

AUTHORIZATION_HEADER = "X-Postmark-Server-Token"


@dataclass
class PostmarkEmailClient:
    """Mail transport speaking the Postmark-style `POST /email` JSON API."""

    base_url: str
    sender: SubscriberEmail
    authorization_token: str
    timeout_ms: int = 10000
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_ms / 1000),
            transport=self.transport,
        )

    async def send_email(
        self,
        *,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        payload = {
            "From": str(self.sender),
            "To": recipient,
            "Subject": subject,
            "HtmlBody": html_content,
            "TextBody": text_content,
        }
        try:
            response = await self._client.post(
                "/email",
                json=payload,
                headers={AUTHORIZATION_HEADER: self.authorization_token},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise EmailTransportError(
                f"mail provider rejected message with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise EmailTransportError(f"mail provider request failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def build_email_client(settings: EmailClientSettings) -> PostmarkEmailClient:
    if settings.base_url is None:
        raise ValueError("EMAIL_BASE_URL is required for the postmark email client")
    return PostmarkEmailClient(
        base_url=settings.base_url,
        sender=SubscriberEmail.parse(settings.sender),
        authorization_token=settings.authorization_token,
        timeout_ms=settings.timeout_ms,
    )
