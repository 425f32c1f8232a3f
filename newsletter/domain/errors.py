from __future__ import annotations


class DomainError(Exception):
    pass


class DomainValidationError(DomainError):
    pass


class DomainInvariantError(DomainError):
    pass


class InvalidIdempotencyKeyError(DomainValidationError):
    pass


class IssueMissingError(DomainInvariantError):
    """A queued delivery task points at an issue row that does not exist."""


class DomainDependencyError(DomainError):
    pass


class PersistenceError(DomainDependencyError):
    """Storage write or read failed; the caller should retry the whole request."""


class EmailTransportError(DomainDependencyError):
    pass


class IdempotencyConflictError(DomainError):
    """Another writer already stored a response for the same owner and key."""

    def __init__(self, *, owner_id: str, idempotency_key: str) -> None:
        super().__init__(f"idempotency record already exists for key '{idempotency_key}'")
        self.owner_id = owner_id
        self.idempotency_key = idempotency_key


def format_error_chain(exc: BaseException) -> str:
    lines = [f"{type(exc).__name__}: {exc}"]
    seen = {id(exc)}
    current = exc.__cause__ or exc.__context__
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"Caused by: {type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return "\n".join(lines)
