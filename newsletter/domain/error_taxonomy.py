from __future__ import annotations

from typing import Literal

from newsletter.domain.errors import (
    DomainError,
    DomainValidationError,
    EmailTransportError,
    InvalidIdempotencyKeyError,
    IssueMissingError,
    PersistenceError,
)

# Canonical error vocabulary for publish and delivery paths.
ErrorCode = Literal[
    "validation_error",
    "invalid_idempotency_key",
    "invalid_recipient_email",
    "issue_missing",
    "delivery_transport_failed",
    "storage_unavailable",
    "internal_error",
]

RetryClassification = Literal["transient", "permanent"]

CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "validation_error",
    "invalid_idempotency_key",
    "invalid_recipient_email",
    "issue_missing",
    "delivery_transport_failed",
    "storage_unavailable",
    "internal_error",
)

# Environmental failures that may succeed if the same input is tried again.
TRANSIENT_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        "delivery_transport_failed",
        "storage_unavailable",
        "internal_error",
    }
)


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def classify_error(code: ErrorCode) -> RetryClassification:
    if code in TRANSIENT_ERROR_CODES:
        return "transient"
    return "permanent"


def resolve_error_code(code: str) -> ErrorCode:
    if is_canonical_error_code(code):
        return code  # type: ignore[return-value]
    # Keep log fields stable even if a caller emitted an unknown code.
    return "internal_error"


def error_code_for(exc: BaseException, *, default: str = "internal_error") -> ErrorCode:
    """Map a raised exception onto the canonical code used in log records.

    `default` applies to exceptions outside the domain hierarchy, for example
    a driver error surfacing from a storage call.
    """
    if isinstance(exc, InvalidIdempotencyKeyError):
        return "invalid_idempotency_key"
    if isinstance(exc, DomainValidationError):
        return "validation_error"
    if isinstance(exc, IssueMissingError):
        return "issue_missing"
    if isinstance(exc, PersistenceError):
        return "storage_unavailable"
    if isinstance(exc, EmailTransportError):
        return "delivery_transport_failed"
    if isinstance(exc, DomainError):
        return "internal_error"
    return resolve_error_code(default)
