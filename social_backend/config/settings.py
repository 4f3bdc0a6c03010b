"""
Runtime settings for Social Backend.

Environment variables:
    SOCIAL_DATABASE_URL                    SQLAlchemy URL (default: sqlite:///./social.db)
    SOCIAL_DATABASE_ECHO                   "1" to echo SQL
    SOCIAL_DATABASE_POOL_TIMEOUT           Seconds to wait for a pooled connection
    SOCIAL_ERASURE_BATCH_SIZE              Rows per delete batch (default: 1000)
    SOCIAL_ERASURE_BATCH_DELAY_MS          Pause between batches (default: 100)
    SOCIAL_ERASURE_TRANSACTION_TIMEOUT     Seconds before the erasure transaction aborts (default: 300)
    SOCIAL_ERASURE_MAX_WAIT                Seconds to wait for the per-user erasure lock (default: 300)
    SOCIAL_ERASURE_SOFT_DELETE_GUARD       "0" disables the in-transaction soft delete
    SOCIAL_ERASURE_COMMIT_SOFT_DELETE_FIRST  "1" commits the soft delete before the cascade
    SOCIAL_ERASURE_VALIDATE_SCHEMA         "0" skips the cascade plan check at startup
    SOCIAL_API_SECRET_KEY                  JWT signing key
    SOCIAL_ENVIRONMENT                     development | production
    SOCIAL_SESSION_COOKIE                  Name of the auth cookie (default: token)
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from social_backend.lib.exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 1000
DEFAULT_BATCH_DELAY_MS = 100
DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 300.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    word = raw.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigurationError(f"{name} must be one of 1/0, true/false, yes/no, on/off, got {raw!r}")


@dataclass(frozen=True)
class DatabaseSettings:
    """Database connection settings."""

    url: str = "sqlite:///./social.db"
    echo: bool = False
    pool_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> DatabaseSettings:
        return cls(
            url=os.getenv("SOCIAL_DATABASE_URL", cls.url),
            echo=_env_bool("SOCIAL_DATABASE_ECHO", False),
            pool_timeout_seconds=_env_float("SOCIAL_DATABASE_POOL_TIMEOUT", 30.0),
        )


@dataclass(frozen=True)
class ErasureSettings:
    """
    Tuning for the account erasure engine.

    Attributes:
        batch_size: Maximum rows removed per delete statement
        batch_delay_ms: Pause between consecutive batches on the same table
        transaction_timeout_seconds: Hard limit for the whole erasure transaction
        max_wait_seconds: Limit for acquiring the per-user erasure lock
        soft_delete_guard: Anonymise and deactivate the account as the first write
        commit_soft_delete_first: Commit the soft delete in its own transaction
            before the cascade starts (leaves the account deactivated even if
            the cascade later rolls back)
        validate_schema_on_startup: Check the cascade plan against ORM metadata
            when the erasure service is constructed
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS
    transaction_timeout_seconds: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS
    max_wait_seconds: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS
    soft_delete_guard: bool = True
    commit_soft_delete_first: bool = False
    validate_schema_on_startup: bool = True

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_delay_ms < 0:
            raise ConfigurationError(f"batch_delay_ms must be >= 0, got {self.batch_delay_ms}")
        # NaN compares false against everything, so check finiteness first
        for field_name in ("transaction_timeout_seconds", "max_wait_seconds"):
            value = getattr(self, field_name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{field_name} must be a positive finite number, got {value}")

    @classmethod
    def from_env(cls) -> ErasureSettings:
        return cls(
            batch_size=_env_int("SOCIAL_ERASURE_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            batch_delay_ms=_env_int("SOCIAL_ERASURE_BATCH_DELAY_MS", DEFAULT_BATCH_DELAY_MS),
            transaction_timeout_seconds=_env_float(
                "SOCIAL_ERASURE_TRANSACTION_TIMEOUT", DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
            ),
            max_wait_seconds=_env_float(
                "SOCIAL_ERASURE_MAX_WAIT", DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
            ),
            soft_delete_guard=_env_bool("SOCIAL_ERASURE_SOFT_DELETE_GUARD", True),
            commit_soft_delete_first=_env_bool("SOCIAL_ERASURE_COMMIT_SOFT_DELETE_FIRST", False),
            validate_schema_on_startup=_env_bool("SOCIAL_ERASURE_VALIDATE_SCHEMA", True),
        )

    @property
    def batch_delay_seconds(self) -> float:
        return self.batch_delay_ms / 1000.0


@dataclass(frozen=True)
class ApiSettings:
    """HTTP layer settings."""

    secret_key: str | None = None
    environment: str = "development"
    session_cookie_name: str = "token"

    @classmethod
    def from_env(cls) -> ApiSettings:
        return cls(
            secret_key=os.getenv("SOCIAL_API_SECRET_KEY"),
            environment=os.getenv("SOCIAL_ENVIRONMENT", "development"),
            session_cookie_name=os.getenv("SOCIAL_SESSION_COOKIE", "token"),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


__all__ = ["ApiSettings", "DatabaseSettings", "ErasureSettings"]
