"""
Classification of data-store failures raised during account erasure.

PostgreSQL drivers expose the SQLSTATE (``sqlstate`` on psycopg 3,
``pgcode`` on psycopg2); SQLite only offers the message text, so both
are consulted.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from social_backend.lib.exceptions import (
    ErasureError,
    ErasureTimeoutError,
    ReferentialOrderingViolationError,
    TransactionConflictError,
    UnknownErasureError,
)

FOREIGN_KEY_VIOLATION = "23503"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
QUERY_CANCELED = "57014"
LOCK_NOT_AVAILABLE = "55P03"

_CONFLICT_STATES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED})
_TIMEOUT_STATES = frozenset({QUERY_CANCELED, LOCK_NOT_AVAILABLE})


def sqlstate_of(exc: BaseException) -> str | None:
    """Return the SQLSTATE of a wrapped DBAPI error, if the driver exposes one."""
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def classify_database_error(
    exc: SQLAlchemyError,
    *,
    user_id: int | None = None,
    elapsed_ms: int | None = None,
    last_family: str | None = None,
) -> ErasureError:
    """Map a SQLAlchemy error to the erasure error taxonomy."""
    context = {"user_id": user_id, "elapsed_ms": elapsed_ms, "last_family": last_family}
    where = f" while purging '{last_family}'" if last_family else ""

    if isinstance(exc, DBAPIError):
        state = sqlstate_of(exc)
        detail = str(exc.orig).lower()

        if state == FOREIGN_KEY_VIOLATION or (
            isinstance(exc, IntegrityError) and "foreign key" in detail
        ):
            return ReferentialOrderingViolationError(
                f"Foreign key constraint failed{where}; check erasure cascade order",
                **context,
            )
        if state in _CONFLICT_STATES or "database is locked" in detail or "deadlock" in detail:
            return TransactionConflictError(
                f"Transaction conflict{where}; retry the erasure",
                **context,
            )
        if state in _TIMEOUT_STATES:
            return ErasureTimeoutError(
                f"Statement or lock timeout{where}",
                **context,
            )

    return UnknownErasureError(f"Erasure failed{where}: {type(exc).__name__}", **context)


__all__ = [
    "DEADLOCK_DETECTED",
    "FOREIGN_KEY_VIOLATION",
    "LOCK_NOT_AVAILABLE",
    "QUERY_CANCELED",
    "SERIALIZATION_FAILURE",
    "classify_database_error",
    "sqlstate_of",
]
