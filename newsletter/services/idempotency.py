from __future__ import annotations

from dataclasses import dataclass
import logging

from starlette.responses import Response

from newsletter.domain.contracts import NewsletterRepository, UnitOfWork
from newsletter.domain.errors import DomainError, IdempotencyConflictError, PersistenceError
from newsletter.domain.idempotency import IdempotencyKey
from newsletter.lib.responses import StoredResponse, buffer_response, build_response

logger = logging.getLogger("idempotency")


@dataclass(frozen=True)
class IdempotencyStore:
    """Response cache keyed by (owner, idempotency key).

    Records are written once and never overwritten. Callers look up before
    doing side effects and save inside the transaction that performed them.
    """

    repository: NewsletterRepository

    async def lookup(self, *, owner_id: str, idempotency_key: IdempotencyKey) -> Response | None:
        try:
            stored = await self.repository.get_saved_response(
                owner_id=owner_id,
                idempotency_key=idempotency_key.value,
            )
        except DomainError:
            raise
        except Exception as exc:
            raise PersistenceError("failed to read saved response") from exc
        if stored is None:
            return None
        return build_response(stored)

    async def save(
        self,
        *,
        owner_id: str,
        idempotency_key: IdempotencyKey,
        response: Response,
        uow: UnitOfWork | None = None,
    ) -> Response:
        """Persist a fully buffered copy of `response` and return an equivalent one.

        Inside a caller's unit of work a duplicate key raises
        IdempotencyConflictError so the side effect rolls back with it. On its
        own, a duplicate key means another writer won and its response is
        returned instead.
        """
        stored = await buffer_response(response)

        if uow is not None:
            await self._write(uow, owner_id=owner_id, idempotency_key=idempotency_key, stored=stored)
            return build_response(stored)

        try:
            async with self.repository.unit_of_work() as own_uow:
                await self._write(own_uow, owner_id=owner_id, idempotency_key=idempotency_key, stored=stored)
        except IdempotencyConflictError:
            logger.info(
                "idempotency key already saved by another writer",
                extra={"owner_id": owner_id, "idempotency_key": idempotency_key.value},
            )
            winner = await self.lookup(owner_id=owner_id, idempotency_key=idempotency_key)
            if winner is None:
                raise PersistenceError("conflicting idempotency record disappeared") from None
            return winner
        except DomainError:
            raise
        except Exception as exc:
            raise PersistenceError("failed to save response") from exc
        return build_response(stored)

    async def _write(
        self,
        uow: UnitOfWork,
        *,
        owner_id: str,
        idempotency_key: IdempotencyKey,
        stored: StoredResponse,
    ) -> None:
        try:
            await uow.save_response(owner_id=owner_id, idempotency_key=idempotency_key.value, response=stored)
        except DomainError:
            raise
        except Exception as exc:
            raise PersistenceError("failed to save response") from exc
