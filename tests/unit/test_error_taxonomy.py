import pytest

from newsletter.domain.error_taxonomy import (
    classify_error,
    error_code_for,
    is_canonical_error_code,
    resolve_error_code,
)
from newsletter.domain.errors import (
    DomainInvariantError,
    DomainValidationError,
    EmailTransportError,
    InvalidIdempotencyKeyError,
    IssueMissingError,
    PersistenceError,
)


@pytest.mark.unit
def test_canonical_error_codes_are_enforced() -> None:
    assert is_canonical_error_code("invalid_recipient_email") is True
    assert is_canonical_error_code("unknown_error") is False


@pytest.mark.unit
def test_unknown_codes_resolve_to_internal_error() -> None:
    assert resolve_error_code("delivery_transport_failed") == "delivery_transport_failed"
    assert resolve_error_code("smtp_exploded") == "internal_error"


@pytest.mark.unit
def test_retry_classification_distinguishes_transient_and_permanent() -> None:
    assert classify_error("delivery_transport_failed") == "transient"
    assert classify_error("storage_unavailable") == "transient"
    assert classify_error("invalid_recipient_email") == "permanent"
    assert classify_error("invalid_idempotency_key") == "permanent"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (InvalidIdempotencyKeyError("bad key"), "invalid_idempotency_key"),
        (DomainValidationError("bad owner"), "validation_error"),
        (IssueMissingError("iss_1"), "issue_missing"),
        (PersistenceError("down"), "storage_unavailable"),
        (EmailTransportError("refused"), "delivery_transport_failed"),
        (DomainInvariantError("lease finalized twice"), "internal_error"),
        (RuntimeError("boom"), "internal_error"),
    ],
)
def test_exceptions_map_to_canonical_codes(exc: Exception, expected: str) -> None:
    assert error_code_for(exc) == expected


@pytest.mark.unit
def test_non_domain_errors_use_caller_default() -> None:
    assert error_code_for(ConnectionError("reset"), default="storage_unavailable") == "storage_unavailable"
    assert error_code_for(ConnectionError("reset"), default="not_a_code") == "internal_error"
    assert error_code_for(IssueMissingError("iss_1"), default="storage_unavailable") == "issue_missing"
