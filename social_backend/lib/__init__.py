"""
Lib package for Social Backend.

Contains shared utilities and the account erasure engine:
- exceptions.py: Application exception hierarchy
- security.py: Log-safe user id hashing
- logging.py: structlog configuration
- database.py: Engine and session factory management
- erasure.py: AccountErasureService (preflight, soft delete, cascade, preview)
- erasure_schema.py: Cascade plan and plan verification
- erasure_purger.py: Batched per-family deletes

Only dependency-free modules are re-exported here; import the erasure
service from social_backend.lib.erasure directly.
"""

from social_backend.lib.erasure_types import Deadline, ErasureResult, PreflightSummary
from social_backend.lib.exceptions import (
    AlreadyDeletedError,
    CascadePlanError,
    ConfigurationError,
    ErasureError,
    ErasureTimeoutError,
    PermissionDeniedError,
    ProtectedAccountError,
    ReferentialOrderingViolationError,
    SocialBackendException,
    TransactionConflictError,
    UnknownErasureError,
    UserNotFoundError,
)
from social_backend.lib.security import hash_uid

__all__ = [
    # Exceptions
    "SocialBackendException",
    "ConfigurationError",
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
    # Erasure value types
    "Deadline",
    "ErasureResult",
    "PreflightSummary",
    # Security
    "hash_uid",
]
