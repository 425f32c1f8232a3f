from __future__ import annotations

from dataclasses import dataclass

from newsletter.domain.contracts import NewsletterRepository
from newsletter.services.idempotency import IdempotencyStore


@dataclass(frozen=True)
class ApiDeps:
    repository: NewsletterRepository
    idempotency_store: IdempotencyStore
