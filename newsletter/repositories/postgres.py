from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
import importlib
from typing import Any

from newsletter.domain.errors import DomainInvariantError, IdempotencyConflictError
from newsletter.domain.models import DeliveryTask, IssueDeliveryStatus, NewsletterIssue, SubscriberStatus
from newsletter.lib.responses import StoredResponse, decode_stored_response, encode_header_records
from newsletter.repositories.sql_loader import load_sql

try:
    asyncpg_module = importlib.import_module("asyncpg")
except ModuleNotFoundError:  # pragma: no cover
    asyncpg_module = None  # type: ignore[assignment]


SQL_GET_SAVED_RESPONSE = load_sql("get_saved_response.sql")
SQL_SAVE_RESPONSE = load_sql("save_response.sql")
SQL_LIST_CONFIRMED_SUBSCRIBER_EMAILS = load_sql("list_confirmed_subscriber_emails.sql")
SQL_INSERT_NEWSLETTER_ISSUE = load_sql("insert_newsletter_issue.sql")
SQL_ENQUEUE_FANOUT = load_sql("enqueue_fanout.sql")
SQL_DEQUEUE_TASK = load_sql("dequeue_task.sql")
SQL_DELETE_TASK = load_sql("delete_task.sql")
SQL_GET_ISSUE = load_sql("get_issue.sql")
SQL_GET_ISSUE_DELIVERY_STATUS = load_sql("get_issue_delivery_status.sql")
SQL_COUNT_PENDING_TASKS = load_sql("count_pending_tasks.sql")
SQL_CREATE_SUBSCRIBER = load_sql("create_subscriber.sql")


def _is_unique_violation(exc: Exception) -> bool:
    return getattr(exc, "sqlstate", None) == "23505"


def _issue_from_row(row: Any) -> NewsletterIssue:
    return NewsletterIssue(
        issue_id=row["newsletter_issue_id"],
        title=row["title"],
        text_content=row["text_content"],
        html_content=row["html_content"],
        published_at=row["published_at"],
    )


@dataclass
class AsyncpgPoolManager:
    dsn: str
    min_size: int = 1
    max_size: int = 5
    pool: Any | None = None

    async def startup(self) -> None:
        if asyncpg_module is None:  # pragma: no cover
            raise RuntimeError("asyncpg is required for postgres repository mode")

        self.pool = await asyncpg_module.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=max(self.max_size, self.min_size),
        )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None


@dataclass
class PostgresUnitOfWork:
    conn: Any

    async def list_confirmed_subscriber_emails(self) -> list[str]:
        rows = await self.conn.fetch(SQL_LIST_CONFIRMED_SUBSCRIBER_EMAILS)
        return [row["email"] for row in rows]

    async def insert_newsletter_issue(
        self,
        *,
        issue_id: str,
        title: str,
        text_content: str,
        html_content: str,
    ) -> None:
        await self.conn.execute(SQL_INSERT_NEWSLETTER_ISSUE, issue_id, title, text_content, html_content)

    async def enqueue_fanout(self, *, issue_id: str, recipients: Sequence[str]) -> int:
        if not recipients:
            return 0
        rows = await self.conn.fetch(SQL_ENQUEUE_FANOUT, issue_id, list(recipients))
        return len(rows)

    async def save_response(
        self,
        *,
        owner_id: str,
        idempotency_key: str,
        response: StoredResponse,
    ) -> None:
        try:
            await self.conn.execute(
                SQL_SAVE_RESPONSE,
                owner_id,
                idempotency_key,
                response.status_code,
                encode_header_records(response),
                response.body,
            )
        except Exception as exc:
            if _is_unique_violation(exc):
                raise IdempotencyConflictError(owner_id=owner_id, idempotency_key=idempotency_key) from exc
            raise


@dataclass
class PostgresDeliveryLease:
    """Open transaction holding the row lock on one delivery task."""

    pool: Any
    conn: Any
    transaction: Any
    task: DeliveryTask
    finalized: bool = False

    async def delete_and_commit(self) -> None:
        self._mark_finalized()
        try:
            await self.conn.execute(SQL_DELETE_TASK, self.task.issue_id, self.task.recipient_email)
        except BaseException:
            try:
                await self.transaction.rollback()
            finally:
                await self.pool.release(self.conn)
            raise
        try:
            await self.transaction.commit()
        finally:
            # Releasing resets the connection, so a failed commit still drops the lock.
            await self.pool.release(self.conn)

    async def rollback(self) -> None:
        self._mark_finalized()
        try:
            await self.transaction.rollback()
        finally:
            await self.pool.release(self.conn)

    async def load_issue(self) -> NewsletterIssue | None:
        if self.finalized:
            raise DomainInvariantError("delivery lease is already finalized")
        row = await self.conn.fetchrow(SQL_GET_ISSUE, self.task.issue_id)
        return _issue_from_row(row) if row is not None else None

    def _mark_finalized(self) -> None:
        if self.finalized:
            raise DomainInvariantError("delivery lease is already finalized")
        self.finalized = True


@dataclass
class PostgresNewsletterRepository:
    pool_manager: AsyncpgPoolManager

    def _pool(self) -> Any:
        if self.pool_manager.pool is None:
            raise RuntimeError("postgres pool is not initialized")
        return self.pool_manager.pool

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[PostgresUnitOfWork]:
        pool = self._pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresUnitOfWork(conn=conn)

    async def get_saved_response(self, *, owner_id: str, idempotency_key: str) -> StoredResponse | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SQL_GET_SAVED_RESPONSE, owner_id, idempotency_key)
        if row is None:
            return None
        return decode_stored_response(
            status_code=row["response_status_code"],
            headers=row["response_headers"],
            body=row["response_body"],
        )

    async def claim_one(self) -> PostgresDeliveryLease | None:
        pool = self._pool()
        conn = await pool.acquire()
        transaction = conn.transaction()
        try:
            await transaction.start()
            row = await conn.fetchrow(SQL_DEQUEUE_TASK)
        except BaseException:
            await pool.release(conn)
            raise

        if row is None:
            try:
                await transaction.rollback()
            finally:
                await pool.release(conn)
            return None

        return PostgresDeliveryLease(
            pool=pool,
            conn=conn,
            transaction=transaction,
            task=DeliveryTask(
                issue_id=row["newsletter_issue_id"],
                recipient_email=row["subscriber_email"],
            ),
        )

    async def get_issue_delivery_status(self, *, issue_id: str) -> IssueDeliveryStatus | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SQL_GET_ISSUE_DELIVERY_STATUS, issue_id)
        if row is None:
            return None
        return IssueDeliveryStatus(
            issue_id=row["newsletter_issue_id"],
            title=row["title"],
            pending_deliveries=row["pending_deliveries"],
        )

    async def count_pending_tasks(self, *, issue_id: str | None = None) -> int:
        pool = self._pool()
        async with pool.acquire() as conn:
            value = await conn.fetchval(SQL_COUNT_PENDING_TASKS, issue_id)
        return int(value or 0)

    async def create_subscriber(
        self,
        *,
        email: str,
        name: str,
        status: SubscriberStatus = SubscriberStatus.CONFIRMED,
    ) -> None:
        pool = self._pool()
        async with pool.acquire() as conn:
            await conn.execute(SQL_CREATE_SUBSCRIBER, email, name, str(status))
