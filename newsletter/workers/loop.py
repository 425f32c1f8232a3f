from __future__ import annotations

from dataclasses import dataclass
import logging

from newsletter.domain.contracts import DeliveryLease, EmailClient, NewsletterRepository
from newsletter.domain.errors import DomainValidationError, IssueMissingError, format_error_chain
from newsletter.domain.error_taxonomy import ErrorCode, classify_error
from newsletter.domain.models import DeliveryTask, ExecutionOutcome
from newsletter.domain.subscriber_email import SubscriberEmail

logger = logging.getLogger("delivery")


@dataclass
class DeliveryWorkerLoop:
    role: str
    repository: NewsletterRepository
    email_client: EmailClient

    async def run_once(self) -> ExecutionOutcome:
        lease = await self.repository.claim_one()
        if lease is None:
            return ExecutionOutcome.EMPTY_QUEUE

        try:
            outcome = await self._process(lease)
        except BaseException:
            # The row stays in the queue and becomes claimable again.
            await lease.rollback()
            raise

        await lease.delete_and_commit()
        return outcome

    async def _process(self, lease: DeliveryLease) -> ExecutionOutcome:
        task = lease.task
        try:
            recipient = SubscriberEmail.parse(task.recipient_email)
        except DomainValidationError as exc:
            self._log_skip(
                "Skipping a confirmed subscriber. Their stored contact details are invalid",
                task=task,
                error_code="invalid_recipient_email",
                exc=exc,
            )
            return ExecutionOutcome.SKIPPED_INVALID_RECIPIENT

        issue = await lease.load_issue()
        if issue is None:
            raise IssueMissingError(f"newsletter issue not found for queued task: {task.issue_id}")

        try:
            await self.email_client.send_email(
                recipient=recipient.value,
                subject=issue.title,
                html_content=issue.html_content,
                text_content=issue.text_content,
            )
        except Exception as exc:
            # No retry column exists; a failed send is logged and the task dropped.
            self._log_skip(
                "Failed to deliver issue to a confirmed subscriber. Skipping",
                task=task,
                error_code="delivery_transport_failed",
                exc=exc,
            )
            return ExecutionOutcome.SKIPPED_TRANSPORT_FAILURE

        logger.info(
            "newsletter issue delivered",
            extra={"role": self.role, "issue_id": task.issue_id, "recipient_email": task.recipient_email},
        )
        return ExecutionOutcome.DELIVERED

    def _log_skip(self, message: str, *, task: DeliveryTask, error_code: ErrorCode, exc: Exception) -> None:
        logger.error(
            message,
            extra={
                "role": self.role,
                "issue_id": task.issue_id,
                "recipient_email": task.recipient_email,
                "error_code": error_code,
                "retry_classification": classify_error(error_code),
                "error_chain": format_error_chain(exc),
            },
        )
