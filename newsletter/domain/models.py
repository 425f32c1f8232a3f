from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SubscriberStatus(StrEnum):
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


class ExecutionOutcome(StrEnum):
    EMPTY_QUEUE = "empty_queue"
    DELIVERED = "delivered"
    SKIPPED_INVALID_RECIPIENT = "skipped_invalid_recipient"
    SKIPPED_TRANSPORT_FAILURE = "skipped_transport_failure"


@dataclass(frozen=True)
class DeliveryTask:
    issue_id: str
    # Stored as submitted; syntax is checked when the task is claimed.
    recipient_email: str


@dataclass(frozen=True)
class NewsletterIssue:
    issue_id: str
    title: str
    text_content: str
    html_content: str
    published_at: datetime | None = None


@dataclass(frozen=True)
class PublishedIssue:
    issue_id: str
    recipients_enqueued: int


@dataclass(frozen=True)
class IssueDeliveryStatus:
    issue_id: str
    title: str
    pending_deliveries: int
