"""
Account erasure (right to be forgotten) for Social Backend.

Permanently removes a user and every row that references them, across all
user-owned tables, in foreign-key dependency order and inside a single
transaction: either everything goes or nothing does.

Flow:
1. Preflight: user exists, role is not protected, impact summary logged
2. Per-user erasure lock (advisory on PostgreSQL, process-local elsewhere)
3. One transaction:
   a. Safety-net soft delete (deactivate, ban, scramble identity)
   b. Batched purge of every family in CASCADE_STEPS order
   c. Delete the user row
4. Return per-family counts and duration

The store handle is injected; the service never builds its own engine.
The whole call blocks and may run for minutes on large accounts, so async
callers must run it in a worker thread.

Usage:
    service = AccountErasureService(session_factory, ErasureSettings.from_env())
    preview = service.preview_erasure(user_id=42)
    result = service.erase_user(user_id=42)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import datetime

import structlog
from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from social_backend.config.settings import ErasureSettings
from social_backend.lib.erasure_errors import classify_database_error
from social_backend.lib.erasure_locks import ErasureLock, lock_for_dialect
from social_backend.lib.erasure_preflight import ErasurePreflightMixin
from social_backend.lib.erasure_preview import PREVIEW_COUNTERS, ErasurePreviewMixin, PreviewCounter
from social_backend.lib.erasure_purger import BatchedTablePurger
from social_backend.lib.erasure_schema import CASCADE_STEPS, CascadeStep, verify_cascade_plan
from social_backend.lib.erasure_soft_delete import ErasureSoftDeleteMixin
from social_backend.lib.erasure_types import Clock, Deadline, ErasureResult
from social_backend.lib.exceptions import (
    AlreadyDeletedError,
    ErasureError,
    ProtectedAccountError,
    UserNotFoundError,
)
from social_backend.lib.security import hash_uid
from social_backend.models import User
from social_backend.models.base import utcnow

logger = structlog.get_logger(__name__)

USER_FAMILY = "user"


class AccountErasureService(
    ErasurePreflightMixin,
    ErasureSoftDeleteMixin,
    ErasurePreviewMixin,
):
    """
    Account erasure engine.

    Args:
        session_factory: Session factory bound to the application database
        settings: Batch size, pacing, timeouts and soft-delete options
        steps: Cascade plan (defaults to CASCADE_STEPS)
        purger: Batched purger (built from settings if omitted)
        lock: Per-user erasure lock (picked from the dialect if omitted)
        preview_counters: Counts reported by preview_erasure
        clock: Monotonic clock used for durations and the deadline
        now: Wall clock used for soft-delete timestamps
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: ErasureSettings | None = None,
        steps: Iterable[CascadeStep] = CASCADE_STEPS,
        purger: BatchedTablePurger | None = None,
        lock: ErasureLock | None = None,
        preview_counters: Iterable[PreviewCounter] = PREVIEW_COUNTERS,
        clock: Clock = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.settings = settings or ErasureSettings.from_env()
        self.steps: tuple[CascadeStep, ...] = tuple(steps)
        if self.settings.validate_schema_on_startup:
            verify_cascade_plan(self.steps)

        self.purger = purger or BatchedTablePurger(
            batch_size=self.settings.batch_size,
            batch_delay_ms=self.settings.batch_delay_ms,
        )
        self._dialect = self._resolve_dialect()
        self._lock = lock or lock_for_dialect(self._dialect)
        self._preview_counters: tuple[PreviewCounter, ...] = tuple(preview_counters)
        self._clock = clock
        self._now = now

    def _resolve_dialect(self) -> str:
        bind = self._session_factory.kw.get("bind")
        return bind.dialect.name if bind is not None else ""

    # =========================================================================
    # Erasure
    # =========================================================================

    def erase_user(self, user_id: int, soft_delete_guard: bool | None = None) -> ErasureResult:
        """
        Permanently delete ``user_id`` and all data that references them.

        Args:
            user_id: Target user
            soft_delete_guard: Override ErasureSettings.soft_delete_guard

        Returns:
            ErasureResult with per-family counts and duration

        Raises:
            UserNotFoundError, ProtectedAccountError: Preflight refused the erasure
            ReferentialOrderingViolationError: A FK blocked a purge step
            AlreadyDeletedError: The user row vanished before the final delete
            TransactionConflictError, ErasureTimeoutError: Retryable failures
            UnknownErasureError: Any other data-store failure
        """
        guard = self.settings.soft_delete_guard if soft_delete_guard is None else soft_delete_guard
        started = self._clock()
        last_family: str | None = None

        logger.info("erasure_started", user_hash=hash_uid(user_id), soft_delete_guard=guard)

        try:
            self.validate_deletion(user_id)
            deadline = Deadline(self.settings.transaction_timeout_seconds, self._clock)

            if guard and self.settings.commit_soft_delete_first:
                self._commit_soft_delete(user_id)

            with self._lock.guard(user_id, self.settings.max_wait_seconds):
                with self._session_factory() as session, session.begin():
                    self._apply_transaction_timeouts(session, deadline)
                    self._lock.acquire_in_transaction(session, user_id)

                    if not self._user_exists(session, user_id):
                        return self._already_deleted_result(user_id, started)

                    if guard and not self.settings.commit_soft_delete_first:
                        self._soft_delete(session, user_id, self._now())

                    deleted_counts: dict[str, int] = {}
                    for step in self.steps:
                        last_family = step.family
                        deleted_counts[step.family] = self.purger.purge(session, step, user_id, deadline)
                        logger.info(
                            "erasure_family_purged",
                            user_hash=hash_uid(user_id),
                            family=step.family,
                            count=deleted_counts[step.family],
                        )

                    last_family = USER_FAMILY
                    deadline.check(user_id, USER_FAMILY)
                    deleted_counts[USER_FAMILY] = self._delete_user_row(session, user_id)

        except ErasureError as e:
            self._fill_context(e, user_id, started, last_family)
            self._log_failure(e)
            raise
        except SQLAlchemyError as e:
            error = classify_database_error(
                e,
                user_id=user_id,
                elapsed_ms=self._elapsed_ms(started),
                last_family=last_family,
            )
            self._log_failure(error)
            raise error from e

        duration_ms = self._elapsed_ms(started)
        logger.info(
            "erasure_completed",
            user_hash=hash_uid(user_id),
            duration_ms=duration_ms,
            deleted_counts=deleted_counts,
        )
        return ErasureResult(success=True, deleted_counts=deleted_counts, duration_ms=duration_ms)

    # =========================================================================
    # Transaction helpers
    # =========================================================================

    def _apply_transaction_timeouts(self, session: Session, deadline: Deadline) -> None:
        """Bound statement and lock waits server-side where the dialect supports it."""
        if self._dialect != "postgresql":
            return
        statement_ms = max(1, int(deadline.remaining() * 1000))
        lock_ms = max(1, int(self.settings.max_wait_seconds * 1000))
        session.execute(
            text("SELECT set_config('statement_timeout', :value, true)"),
            {"value": f"{statement_ms}ms"},
        )
        session.execute(
            text("SELECT set_config('lock_timeout', :value, true)"),
            {"value": f"{lock_ms}ms"},
        )

    def _user_exists(self, session: Session, user_id: int) -> bool:
        return session.scalar(select(User.id).where(User.id == user_id)) is not None

    def _delete_user_row(self, session: Session, user_id: int) -> int:
        table = User.__table__
        result = session.execute(delete(table).where(table.c.id == user_id))
        if (result.rowcount or 0) != 1:
            raise AlreadyDeletedError(
                f"User {user_id} was not found at final delete; a concurrent erasure may have removed it",
                user_id=user_id,
                last_family=USER_FAMILY,
            )
        return 1

    def _already_deleted_result(self, user_id: int, started: float) -> ErasureResult:
        duration_ms = self._elapsed_ms(started)
        logger.info(
            "erasure_already_completed",
            user_hash=hash_uid(user_id),
            duration_ms=duration_ms,
        )
        return ErasureResult(success=True, duration_ms=duration_ms, already_deleted=True)

    # =========================================================================
    # Error context
    # =========================================================================

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    def _fill_context(
        self,
        error: ErasureError,
        user_id: int,
        started: float,
        last_family: str | None,
    ) -> None:
        if error.user_id is None:
            error.user_id = user_id
        if error.elapsed_ms is None:
            error.elapsed_ms = self._elapsed_ms(started)
        if error.last_family is None:
            error.last_family = last_family

    def _log_failure(self, error: ErasureError) -> None:
        fields = {
            "user_hash": hash_uid(error.user_id) if error.user_id is not None else None,
            "error": error.code,
            "retryable": error.retryable,
            "last_family": error.last_family,
            "elapsed_ms": error.elapsed_ms,
        }
        if isinstance(error, (UserNotFoundError, ProtectedAccountError)):
            logger.warning("erasure_rejected", **fields)
        else:
            logger.error("erasure_failed", **fields)


__all__ = ["AccountErasureService", "USER_FAMILY"]
