from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from newsletter.api.handlers.deps import ApiDeps
from newsletter.clients.email import PostmarkEmailClient, build_email_client
from newsletter.clients.stub import StubEmailClient
from newsletter.domain.contracts import EmailClient, NewsletterRepository
from newsletter.repositories.postgres import AsyncpgPoolManager, PostgresNewsletterRepository
from newsletter.repositories.stub import InMemoryNewsletterRepository
from newsletter.roles import RuntimeRole
from newsletter.services.idempotency import IdempotencyStore
from newsletter.settings import (
    DatabaseSettings,
    EmailClientSettings,
    database_settings_from_env,
    email_client_settings_from_env,
)
from newsletter.workers.loop import DeliveryWorkerLoop


@dataclass
class RuntimeContainer:
    repository: NewsletterRepository
    email_client: EmailClient
    idempotency_store: IdempotencyStore
    api_deps: ApiDeps
    worker_loop: DeliveryWorkerLoop | None
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container(
    role: RuntimeRole,
    *,
    database_settings: DatabaseSettings | None = None,
    email_settings: EmailClientSettings | None = None,
) -> RuntimeContainer:
    database_settings = database_settings or database_settings_from_env()
    email_settings = email_settings or email_client_settings_from_env()

    on_startup: Callable[[], Awaitable[None]] | None = None
    shutdown_steps: list[Callable[[], Awaitable[None]]] = []

    repository: NewsletterRepository
    if database_settings.url:
        pool_manager = AsyncpgPoolManager(
            dsn=database_settings.url,
            min_size=database_settings.pool_min_size,
            max_size=database_settings.pool_max_size,
        )
        repository = PostgresNewsletterRepository(pool_manager=pool_manager)
        on_startup = pool_manager.startup
        shutdown_steps.append(pool_manager.shutdown)
    else:
        repository = InMemoryNewsletterRepository()

    email_client: PostmarkEmailClient | StubEmailClient
    if email_settings.base_url:
        email_client = build_email_client(email_settings)
    else:
        email_client = StubEmailClient()
    shutdown_steps.append(email_client.aclose)

    idempotency_store = IdempotencyStore(repository=repository)
    api_deps = ApiDeps(repository=repository, idempotency_store=idempotency_store)

    worker_loop: DeliveryWorkerLoop | None = None
    if role.runs_delivery_worker:
        worker_loop = DeliveryWorkerLoop(
            role=role.name,
            repository=repository,
            email_client=email_client,
        )

    async def on_shutdown() -> None:
        for step in shutdown_steps:
            await step()

    return RuntimeContainer(
        repository=repository,
        email_client=email_client,
        idempotency_store=idempotency_store,
        api_deps=api_deps,
        worker_loop=worker_loop,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
