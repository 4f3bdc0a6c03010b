"""
Custom exception hierarchy for Social Backend.

All exceptions inherit from SocialBackendException, enabling a catch-all
for application errors while keeping the ability to catch specific types.

The erasure family (ErasureError and subclasses) carries the context an
operator needs to triage a failed account deletion: the target user id,
elapsed time and the last entity family the cascade attempted.
"""

from __future__ import annotations

from typing import Any


class SocialBackendException(Exception):
    """Base exception for all Social Backend errors."""


class ConfigurationError(SocialBackendException):
    """Missing environment variables, invalid config values, or startup failures."""


class DatabaseError(SocialBackendException):
    """Database connection, query, or migration failures."""


class SecurityError(SocialBackendException):
    """Authentication or token validation failures."""


class PermissionDeniedError(SecurityError):
    """Caller's role lacks the required permission."""


class CascadePlanError(SocialBackendException):
    """The erasure cascade plan does not cover or order the schema correctly."""


# =============================================================================
# Account erasure
# =============================================================================


class ErasureError(SocialBackendException):
    """
    Base class for account erasure failures.

    Attributes:
        user_id: Target user id
        elapsed_ms: Milliseconds spent before the failure
        last_family: Entity family being purged when the failure happened
    """

    code = "erasure_failed"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        user_id: int | None = None,
        elapsed_ms: int | None = None,
        last_family: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.elapsed_ms = elapsed_ms
        self.last_family = last_family

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_id": self.user_id,
            "elapsed_ms": self.elapsed_ms,
            "last_family": self.last_family,
            "retryable": self.retryable,
        }


class UserNotFoundError(ErasureError):
    """No user with the requested id exists."""

    code = "user_not_found"


class ProtectedAccountError(ErasureError):
    """The user's role is exempt from self-service erasure."""

    code = "protected_account"


class ReferentialOrderingViolationError(ErasureError):
    """A foreign key blocked a purge step; the cascade order is incomplete or the schema changed."""

    code = "referential_ordering_violation"


class AlreadyDeletedError(ErasureError):
    """The final user delete matched no row; a concurrent erasure got there first."""

    code = "already_deleted"


class TransactionConflictError(ErasureError):
    """Serialization failure or deadlock. Safe to retry the whole erasure."""

    code = "transaction_conflict"
    retryable = True


class ErasureTimeoutError(ErasureError):
    """The erasure transaction or lock wait exceeded its time limit and was rolled back."""

    code = "erasure_timeout"
    retryable = True


class UnknownErasureError(ErasureError):
    """Any other data-store failure."""

    code = "unknown"


__all__ = [
    "SocialBackendException",
    "ConfigurationError",
    "DatabaseError",
    "SecurityError",
    "PermissionDeniedError",
    "CascadePlanError",
    "ErasureError",
    "UserNotFoundError",
    "ProtectedAccountError",
    "ReferentialOrderingViolationError",
    "AlreadyDeletedError",
    "TransactionConflictError",
    "ErasureTimeoutError",
    "UnknownErasureError",
]
