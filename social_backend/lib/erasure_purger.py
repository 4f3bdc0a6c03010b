"""
Batched table purger for account erasure.

Removes every row of one entity family that matches the family's ownership
filter, at most ``batch_size`` rows per statement, pausing between batches
so row locks are held briefly and concurrent readers can interleave.

A batch that removes exactly ``batch_size`` rows is never taken as proof
of exhaustion: the loop only stops once a statement removes fewer rows
than the batch size (possibly zero).
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from social_backend.config.settings import DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE
from social_backend.lib.erasure_schema import CascadeStep
from social_backend.lib.erasure_types import Deadline
from social_backend.lib.security import hash_uid

logger = structlog.get_logger(__name__)


class BatchedTablePurger:
    """
    Deletes one family's rows in bounded batches.

    Args:
        batch_size: Maximum rows per DELETE statement
        batch_delay_ms: Pause between consecutive batches of the same family
        sleep: Blocking sleep function (injectable for tests)
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_delay_ms < 0:
            raise ValueError(f"batch_delay_ms must be >= 0, got {batch_delay_ms}")
        self.batch_size = batch_size
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep

    def delete_batch(self, session: Session, step: CascadeStep, user_id: int) -> int:
        """
        Delete up to ``batch_size`` matching rows and return how many went.

        Issued as ``DELETE ... WHERE id IN (SELECT id ... LIMIT n)`` so it
        works on dialects without ``DELETE ... LIMIT``.
        """
        table = step.model.__table__
        batch_ids = (
            select(table.c.id)
            .where(step.build_filter(user_id))
            .limit(self.batch_size)
            .correlate(None)
        )
        result = session.execute(delete(table).where(table.c.id.in_(batch_ids)))
        return int(result.rowcount or 0)

    def purge(
        self,
        session: Session,
        step: CascadeStep,
        user_id: int,
        deadline: Deadline | None = None,
    ) -> int:
        """
        Remove every row of ``step``'s family owned by ``user_id``.

        Returns:
            Total rows removed for the family.

        Raises:
            ErasureTimeoutError: If the deadline passes between batches
            SQLAlchemyError: Propagated unchanged from the data store
        """
        total = 0
        batches = 0
        while True:
            if deadline is not None:
                deadline.check(user_id, step.family)
            try:
                deleted = self.delete_batch(session, step, user_id)
            except SQLAlchemyError as e:
                logger.error(
                    "erasure_batch_failed",
                    family=step.family,
                    user_hash=hash_uid(user_id),
                    batches=batches,
                    error=type(e).__name__,
                )
                raise
            batches += 1
            total += deleted
            if deleted < self.batch_size:
                break
            if self.batch_delay_ms:
                self._sleep(self.batch_delay_ms / 1000.0)

        if batches > 1:
            logger.debug(
                "erasure_family_batched",
                family=step.family,
                user_hash=hash_uid(user_id),
                batches=batches,
                rows=total,
            )
        return total


__all__ = ["BatchedTablePurger"]
