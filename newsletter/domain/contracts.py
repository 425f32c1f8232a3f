from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from newsletter.domain.models import DeliveryTask, IssueDeliveryStatus, NewsletterIssue, SubscriberStatus
from newsletter.lib.responses.types import StoredResponse

CLAIM_SQL_CONTRACT = "SELECT ... FOR UPDATE SKIP LOCKED LIMIT 1"


@runtime_checkable
class DeliveryLease(Protocol):
    """Live claim on one queue row.

    The row stays locked until the lease is finalized. Exactly one of
    delete_and_commit() or rollback() must be called.
    """

    @property
    def task(self) -> DeliveryTask: ...

    # Reads through the lease's own connection; no second pooled connection.
    async def load_issue(self) -> NewsletterIssue | None: ...

    async def delete_and_commit(self) -> None: ...

    async def rollback(self) -> None: ...


@runtime_checkable
class UnitOfWork(Protocol):
    """Writes that must commit or roll back together."""

    async def list_confirmed_subscriber_emails(self) -> list[str]: ...

    async def insert_newsletter_issue(
        self,
        *,
        issue_id: str,
        title: str,
        text_content: str,
        html_content: str,
    ) -> None: ...

    async def enqueue_fanout(self, *, issue_id: str, recipients: Sequence[str]) -> int: ...

    # Raises IdempotencyConflictError when the key is already taken.
    async def save_response(
        self,
        *,
        owner_id: str,
        idempotency_key: str,
        response: StoredResponse,
    ) -> None: ...


@runtime_checkable
class NewsletterRepository(Protocol):
    """Storage contract for the idempotency table and the delivery queue.

    Claim semantics must remain compatible with Postgres row claims using
    SELECT ... FOR UPDATE SKIP LOCKED.
    """

    def unit_of_work(self) -> AbstractAsyncContextManager[UnitOfWork]: ...

    async def get_saved_response(self, *, owner_id: str, idempotency_key: str) -> StoredResponse | None: ...

    async def claim_one(self) -> DeliveryLease | None: ...

    async def get_issue_delivery_status(self, *, issue_id: str) -> IssueDeliveryStatus | None: ...

    async def count_pending_tasks(self, *, issue_id: str | None = None) -> int: ...

    async def create_subscriber(
        self,
        *,
        email: str,
        name: str,
        status: SubscriberStatus = SubscriberStatus.CONFIRMED,
    ) -> None: ...


@runtime_checkable
class EmailClient(Protocol):
    async def send_email(
        self,
        *,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None: ...
