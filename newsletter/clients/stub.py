from __future__ import annotations

from dataclasses import dataclass, field

from newsletter.domain.errors import EmailTransportError


@dataclass(frozen=True)
class SentEmail:
    recipient: str
    subject: str
    html_content: str
    text_content: str


@dataclass
class StubEmailClient:
    sent: list[SentEmail] = field(default_factory=list)
    failing_recipients: set[str] = field(default_factory=set)
    attempts: int = 0

    async def send_email(
        self,
        *,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        self.attempts += 1
        if recipient in self.failing_recipients:
            raise EmailTransportError(f"stub transport refused recipient: {recipient}")
        self.sent.append(
            SentEmail(
                recipient=recipient,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
            )
        )

    async def aclose(self) -> None:
        return None
