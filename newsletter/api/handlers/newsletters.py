from __future__ import annotations

import logging

from fastapi.responses import JSONResponse
from starlette.responses import Response

from newsletter.api.handlers.deps import ApiDeps
from newsletter.api.schemas import IssueDeliveryStatusResponse, PublishNewsletterRequest, PublishNewsletterResponse
from newsletter.domain.errors import DomainError, IdempotencyConflictError, PersistenceError
from newsletter.domain.idempotency import IdempotencyKey, parse_owner_id
from newsletter.domain.use_cases.publish import publish_issue

COMPONENT_ID = "api.publish_newsletter"
logger = logging.getLogger("runtime")


async def publish_newsletter_handler(
    *,
    owner_id: str | None,
    idempotency_key: str | None,
    request: PublishNewsletterRequest,
    api_deps: ApiDeps,
) -> Response:
    owner = parse_owner_id(owner_id)
    key = IdempotencyKey.parse(idempotency_key)
    store = api_deps.idempotency_store

    cached = await store.lookup(owner_id=owner, idempotency_key=key)
    if cached is not None:
        logger.info(
            "replaying saved publish response",
            extra={"owner_id": owner, "idempotency_key": key.value},
        )
        return cached

    try:
        async with api_deps.repository.unit_of_work() as uow:
            published = await publish_issue(
                uow,
                title=request.title,
                text_content=request.content.text,
                html_content=request.content.html,
            )
            body = PublishNewsletterResponse(
                issue_id=published.issue_id,
                recipients_enqueued=published.recipients_enqueued,
            )
            saved = await store.save(
                owner_id=owner,
                idempotency_key=key,
                response=JSONResponse(content=body.model_dump(), status_code=200),
                uow=uow,
            )
    except IdempotencyConflictError:
        # A concurrent duplicate committed first; our issue rolled back with the conflict.
        winner = await store.lookup(owner_id=owner, idempotency_key=key)
        if winner is None:
            raise PersistenceError("conflicting publish response is not readable") from None
        return winner
    except DomainError:
        raise
    except Exception as exc:
        raise PersistenceError("failed to publish newsletter issue") from exc

    logger.info(
        "newsletter issue published",
        extra={
            "owner_id": owner,
            "idempotency_key": key.value,
            "issue_id": published.issue_id,
            "recipients_enqueued": published.recipients_enqueued,
        },
    )
    return saved


async def get_issue_delivery_status_handler(
    *,
    issue_id: str,
    api_deps: ApiDeps,
) -> IssueDeliveryStatusResponse | None:
    try:
        status = await api_deps.repository.get_issue_delivery_status(issue_id=issue_id)
    except DomainError:
        raise
    except Exception as exc:
        raise PersistenceError("failed to read issue delivery status") from exc
    if status is None:
        return None
    return IssueDeliveryStatusResponse(
        issue_id=status.issue_id,
        title=status.title,
        pending_deliveries=status.pending_deliveries,
    )
