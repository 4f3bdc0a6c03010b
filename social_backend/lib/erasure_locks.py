"""
Per-user erasure locks.

Two concurrent erasures of the same user must not both run the cascade.
On PostgreSQL a transaction-scoped advisory lock keyed by the user id is
taken as the first statement of the erasure transaction; it is released
by commit or rollback. Other dialects use a process-local lock held
around the whole transaction.

After the lock is held the orchestrator re-reads the user row; if a
concurrent erasure already removed it the second call ends as an
idempotent success.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import text
from sqlalchemy.orm import Session

from social_backend.lib.exceptions import ErasureTimeoutError

# First key of the two-int advisory lock form; keeps erasure locks apart
# from any other advisory lock users of the same database.
ADVISORY_LOCK_NAMESPACE = 0x50C1


class ErasureLock:
    """No-op lock. Subclasses override one or both hooks."""

    @contextmanager
    def guard(self, user_id: int, timeout_seconds: float) -> Iterator[None]:
        """Held around the whole erasure transaction."""
        yield

    def acquire_in_transaction(self, session: Session, user_id: int) -> None:
        """Called as the first statement inside the erasure transaction."""


class AdvisoryErasureLock(ErasureLock):
    """PostgreSQL ``pg_advisory_xact_lock``; waits are bounded by ``lock_timeout``."""

    def acquire_in_transaction(self, session: Session, user_id: int) -> None:
        session.execute(
            text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
            {"namespace": ADVISORY_LOCK_NAMESPACE, "key": user_id & 0x7FFFFFFF},
        )


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class LocalErasureLock(ErasureLock):
    """Process-local per-user lock for dialects without advisory locks."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._entries: dict[int, _LockEntry] = {}

    @contextmanager
    def guard(self, user_id: int, timeout_seconds: float) -> Iterator[None]:
        with self._mutex:
            entry = self._entries.setdefault(user_id, _LockEntry())
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=timeout_seconds)
        try:
            if not acquired:
                raise ErasureTimeoutError(
                    f"Timed out after {timeout_seconds:.0f}s waiting for another erasure of this user",
                    user_id=user_id,
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._mutex:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(user_id, None)

    def is_held(self, user_id: int) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.lock.locked()


def lock_for_dialect(dialect_name: str) -> ErasureLock:
    """Pick the lock implementation for a SQLAlchemy dialect name."""
    if dialect_name == "postgresql":
        return AdvisoryErasureLock()
    return LocalErasureLock()


__all__ = [
    "ADVISORY_LOCK_NAMESPACE",
    "AdvisoryErasureLock",
    "ErasureLock",
    "LocalErasureLock",
    "lock_for_dialect",
]
