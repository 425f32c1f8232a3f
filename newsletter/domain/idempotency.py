from __future__ import annotations

from dataclasses import dataclass
import re

from newsletter.domain.errors import DomainValidationError, InvalidIdempotencyKeyError

IDEMPOTENCY_KEY_MAX_LENGTH = 50
IDEMPOTENCY_KEY_PATTERN = re.compile(r"^[A-Za-z0-9\-_.:~]+$")
OWNER_ID_MAX_LENGTH = 128


@dataclass(frozen=True)
class IdempotencyKey:
    value: str

    @classmethod
    def parse(cls, raw: str | None) -> IdempotencyKey:
        if raw is None or raw == "":
            raise InvalidIdempotencyKeyError("idempotency key cannot be empty")
        if len(raw) > IDEMPOTENCY_KEY_MAX_LENGTH:
            raise InvalidIdempotencyKeyError(
                f"idempotency key must be at most {IDEMPOTENCY_KEY_MAX_LENGTH} characters long"
            )
        if IDEMPOTENCY_KEY_PATTERN.fullmatch(raw) is None:
            raise InvalidIdempotencyKeyError("idempotency key contains unsupported characters")
        return cls(value=raw)

    def __str__(self) -> str:
        return self.value


def parse_owner_id(raw: str | None) -> str:
    if raw is None or not raw.strip():
        raise DomainValidationError("owner identity is required")
    if len(raw) > OWNER_ID_MAX_LENGTH:
        raise DomainValidationError(f"owner identity must be at most {OWNER_ID_MAX_LENGTH} characters long")
    return raw
