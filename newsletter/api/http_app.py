from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
import logging

from fastapi import FastAPI, Header, HTTPException, Path
from starlette.responses import Response

from newsletter.api.handlers.deps import ApiDeps
from newsletter.api.handlers.newsletters import get_issue_delivery_status_handler, publish_newsletter_handler
from newsletter.api.schemas import (
    IDEMPOTENCY_KEY_HEADER,
    ISSUE_ID_PATTERN,
    OWNER_ID_HEADER,
    ErrorResponse,
    HealthResponse,
    IssueDeliveryStatusResponse,
    PublishNewsletterRequest,
    PublishNewsletterResponse,
    ReadyResponse,
    WorkerMetrics,
)
from newsletter.domain.errors import DomainError, DomainValidationError, PersistenceError, format_error_chain
from newsletter.domain.error_taxonomy import classify_error, error_code_for
from newsletter.workers.loop import DeliveryWorkerLoop
from newsletter.workers.runner import (
    WorkerRuntimeSettings,
    WorkerRuntimeState,
    run_worker_until_stopped,
    worker_runtime_settings_from_env,
)


def build_app(
    role: str,
    run_id: str,
    worker_loop: DeliveryWorkerLoop | None = None,
    worker_runtime_settings: WorkerRuntimeSettings | None = None,
    api_deps: ApiDeps | None = None,
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")
    context = {"role": role, "service": role, "run_id": run_id}
    worker_state = WorkerRuntimeState()
    worker_task: asyncio.Task[None] | None = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal worker_task
        del app
        stop_event = asyncio.Event()
        logger.info("role started", extra=context)
        if on_startup is not None:
            await on_startup()

        try:
            if worker_loop is not None:
                worker_task = asyncio.create_task(
                    run_worker_until_stopped(
                        worker_loop=worker_loop,
                        role=role,
                        run_id=run_id,
                        stop_event=stop_event,
                        settings=worker_runtime_settings or worker_runtime_settings_from_env(),
                        logger=logger,
                        state=worker_state,
                    )
                )
            yield
        finally:
            stop_event.set()
            if worker_task is not None:
                await worker_task
            if on_shutdown is not None:
                await on_shutdown()
            logger.info("role stopped", extra=context)

    app = FastAPI(title="newsletter-delivery", version="0.1.0", lifespan=lifespan)

    def _require_api_deps() -> ApiDeps:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        return api_deps

    def _to_http_error(exc: DomainError) -> HTTPException:
        error_code = error_code_for(exc)
        fields = {**context, "error_code": error_code, "retry_classification": classify_error(error_code)}
        if isinstance(exc, DomainValidationError):
            logger.warning("request rejected", extra=fields)
            return HTTPException(status_code=400, detail=str(exc))
        logger.error("request failed", extra={**fields, "error_chain": format_error_chain(exc)})
        if isinstance(exc, PersistenceError):
            return HTTPException(status_code=500, detail="storage is unavailable, retry the request")
        return HTTPException(status_code=500, detail="internal error")

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", role=role)

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        if worker_loop is None:
            loop_ready = True
        else:
            loop_ready = worker_state.started and worker_task is not None and not worker_task.done()
        return ReadyResponse(
            status="ready",
            role=role,
            worker_loop_enabled=worker_loop is not None,
            worker_loop_ready=loop_ready,
            worker_metrics=WorkerMetrics(**asdict(worker_state)),
        )

    @app.post(
        "/admin/newsletters",
        response_model=PublishNewsletterResponse,
        responses={
            400: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
        tags=["Newsletters"],
    )
    async def publish_newsletter(
        request: PublishNewsletterRequest,
        owner_id: str | None = Header(default=None, alias=OWNER_ID_HEADER),
        idempotency_key: str | None = Header(default=None, alias=IDEMPOTENCY_KEY_HEADER),
    ) -> Response:
        deps = _require_api_deps()
        try:
            return await publish_newsletter_handler(
                owner_id=owner_id,
                idempotency_key=idempotency_key,
                request=request,
                api_deps=deps,
            )
        except DomainError as exc:
            raise _to_http_error(exc) from exc

    @app.get(
        "/admin/newsletters/{issue_id}",
        response_model=IssueDeliveryStatusResponse,
        responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Newsletters"],
    )
    async def get_issue_delivery_status(
        issue_id: str = Path(..., pattern=ISSUE_ID_PATTERN),
    ) -> IssueDeliveryStatusResponse:
        deps = _require_api_deps()
        try:
            status = await get_issue_delivery_status_handler(issue_id=issue_id, api_deps=deps)
        except DomainError as exc:
            raise _to_http_error(exc) from exc
        if status is None:
            raise HTTPException(status_code=404, detail="newsletter issue not found")
        return status

    return app
