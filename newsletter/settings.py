from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class DatabaseSettings:
    url: str | None = None
    pool_min_size: int = 1
    pool_max_size: int = 5


@dataclass(frozen=True)
class EmailClientSettings:
    base_url: str | None = None
    sender: str = ""
    authorization_token: str = ""
    timeout_ms: int = 10000


def database_settings_from_env() -> DatabaseSettings:
    return DatabaseSettings(
        url=os.getenv("DATABASE_URL") or None,
        pool_min_size=env_int("DATABASE_POOL_MIN_SIZE", 1),
        pool_max_size=env_int("DATABASE_POOL_MAX_SIZE", 5),
    )


def email_client_settings_from_env() -> EmailClientSettings:
    defaults = EmailClientSettings()
    return EmailClientSettings(
        base_url=os.getenv("EMAIL_BASE_URL") or None,
        sender=os.getenv("EMAIL_SENDER", defaults.sender),
        authorization_token=os.getenv("EMAIL_AUTHORIZATION_TOKEN", defaults.authorization_token),
        timeout_ms=env_int("EMAIL_TIMEOUT_MS", defaults.timeout_ms),
    )


def env_int(name: str, default: int, *, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed >= minimum else default
