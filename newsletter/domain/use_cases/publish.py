from __future__ import annotations

from newsletter.domain.contracts import UnitOfWork
from newsletter.domain.ids import new_issue_public_id
from newsletter.domain.models import PublishedIssue

COMPONENT_ID = "domain.newsletter.publish"


async def publish_issue(
    uow: UnitOfWork,
    *,
    title: str,
    text_content: str,
    html_content: str,
) -> PublishedIssue:
    """Create the issue and one delivery task per confirmed subscriber.

    Everything is written through `uow`, so the issue and its tasks become
    visible together or not at all. Recipient addresses are queued as stored;
    the delivery worker validates them.
    """
    recipients = await uow.list_confirmed_subscriber_emails()
    issue_id = new_issue_public_id()
    await uow.insert_newsletter_issue(
        issue_id=issue_id,
        title=title,
        text_content=text_content,
        html_content=html_content,
    )
    enqueued = await uow.enqueue_fanout(issue_id=issue_id, recipients=recipients)
    return PublishedIssue(issue_id=issue_id, recipients_enqueued=enqueued)
