from __future__ import annotations

from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from newsletter.domain.errors import DomainValidationError


@dataclass(frozen=True)
class SubscriberEmail:
    """Syntactically valid recipient address.

    Deliverability (MX lookups) is not checked; the mail provider is the
    authority on whether a well-formed address actually exists.
    """

    value: str

    @classmethod
    def parse(cls, raw: str) -> SubscriberEmail:
        try:
            validated = validate_email(raw, check_deliverability=False)
        except EmailNotValidError as exc:
            raise DomainValidationError(f"'{raw}' is not a valid subscriber email") from exc
        return cls(value=validated.normalized)

    def __str__(self) -> str:
        return self.value
