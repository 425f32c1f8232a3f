from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from newsletter.domain.errors import DomainInvariantError, IdempotencyConflictError
from newsletter.domain.models import DeliveryTask, IssueDeliveryStatus, NewsletterIssue, SubscriberStatus
from newsletter.lib.responses.types import StoredResponse


@dataclass
class _SubscriberRow:
    email: str
    name: str
    status: SubscriberStatus


@dataclass
class _QueueRow:
    task: DeliveryTask
    locked: bool = False


@dataclass
class InMemoryUnitOfWork:
    """Stages writes until the owning repository commits them."""

    repository: InMemoryNewsletterRepository
    issues: list[NewsletterIssue] = field(default_factory=list)
    tasks: list[DeliveryTask] = field(default_factory=list)
    responses: dict[tuple[str, str], StoredResponse] = field(default_factory=dict)

    async def list_confirmed_subscriber_emails(self) -> list[str]:
        return [
            row.email
            for row in self.repository.subscribers.values()
            if row.status == SubscriberStatus.CONFIRMED
        ]

    async def insert_newsletter_issue(
        self,
        *,
        issue_id: str,
        title: str,
        text_content: str,
        html_content: str,
    ) -> None:
        if issue_id in self.repository.issues or any(issue.issue_id == issue_id for issue in self.issues):
            raise DomainInvariantError(f"newsletter issue already exists: {issue_id}")
        self.issues.append(
            NewsletterIssue(
                issue_id=issue_id,
                title=title,
                text_content=text_content,
                html_content=html_content,
                published_at=datetime.now(tz=UTC),
            )
        )

    async def enqueue_fanout(self, *, issue_id: str, recipients: Sequence[str]) -> int:
        existing = {
            (row.task.issue_id, row.task.recipient_email) for row in self.repository.queue
        } | {(task.issue_id, task.recipient_email) for task in self.tasks}
        inserted = 0
        for recipient in recipients:
            key = (issue_id, recipient)
            if key in existing:
                continue
            existing.add(key)
            self.tasks.append(DeliveryTask(issue_id=issue_id, recipient_email=recipient))
            inserted += 1
        return inserted

    async def save_response(
        self,
        *,
        owner_id: str,
        idempotency_key: str,
        response: StoredResponse,
    ) -> None:
        key = (owner_id, idempotency_key)
        # Uncommitted reservations behave like a unique index held by another transaction.
        if key in self.repository.saved_responses or key in self.repository.reserved_keys:
            raise IdempotencyConflictError(owner_id=owner_id, idempotency_key=idempotency_key)
        self.repository.reserved_keys.add(key)
        self.responses[key] = response

    def _commit(self) -> None:
        for issue in self.issues:
            self.repository.issues[issue.issue_id] = issue
        self.repository.queue.extend(_QueueRow(task=task) for task in self.tasks)
        self.repository.saved_responses.update(self.responses)
        self._release_reservations()

    def _release_reservations(self) -> None:
        for key in self.responses:
            self.repository.reserved_keys.discard(key)


@dataclass
class InMemoryDeliveryLease:
    repository: InMemoryNewsletterRepository
    row: _QueueRow
    finalized: bool = False

    @property
    def task(self) -> DeliveryTask:
        return self.row.task

    async def load_issue(self) -> NewsletterIssue | None:
        if self.finalized:
            raise DomainInvariantError("delivery lease is already finalized")
        return self.repository.issues.get(self.row.task.issue_id)

    async def delete_and_commit(self) -> None:
        self._mark_finalized()
        self.repository.queue.remove(self.row)

    async def rollback(self) -> None:
        self._mark_finalized()
        self.row.locked = False

    def _mark_finalized(self) -> None:
        if self.finalized:
            raise DomainInvariantError("delivery lease is already finalized")
        self.finalized = True


@dataclass
class InMemoryNewsletterRepository:
    """Non-network repository with deterministic behavior for local mode."""

    subscribers: dict[str, _SubscriberRow] = field(default_factory=dict)
    issues: dict[str, NewsletterIssue] = field(default_factory=dict)
    queue: list[_QueueRow] = field(default_factory=list)
    saved_responses: dict[tuple[str, str], StoredResponse] = field(default_factory=dict)
    reserved_keys: set[tuple[str, str]] = field(default_factory=set)

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InMemoryUnitOfWork]:
        uow = InMemoryUnitOfWork(repository=self)
        try:
            yield uow
        except BaseException:
            uow._release_reservations()
            raise
        uow._commit()

    async def get_saved_response(self, *, owner_id: str, idempotency_key: str) -> StoredResponse | None:
        return self.saved_responses.get((owner_id, idempotency_key))

    async def claim_one(self) -> InMemoryDeliveryLease | None:
        for row in self.queue:
            if not row.locked:
                row.locked = True
                return InMemoryDeliveryLease(repository=self, row=row)
        return None

    async def get_issue_delivery_status(self, *, issue_id: str) -> IssueDeliveryStatus | None:
        issue = self.issues.get(issue_id)
        if issue is None:
            return None
        return IssueDeliveryStatus(
            issue_id=issue.issue_id,
            title=issue.title,
            pending_deliveries=await self.count_pending_tasks(issue_id=issue_id),
        )

    async def count_pending_tasks(self, *, issue_id: str | None = None) -> int:
        return sum(1 for row in self.queue if issue_id is None or row.task.issue_id == issue_id)

    async def create_subscriber(
        self,
        *,
        email: str,
        name: str,
        status: SubscriberStatus = SubscriberStatus.CONFIRMED,
    ) -> None:
        existing = self.subscribers.get(email)
        if existing is not None:
            existing.status = status
            return
        self.subscribers[email] = _SubscriberRow(email=email, name=name, status=status)
