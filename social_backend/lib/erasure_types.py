"""
Account erasure types: result dataclasses and the transaction deadline.

Split from social_backend/lib/erasure.py for maintainability.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from social_backend.lib.exceptions import ErasureTimeoutError

Clock = Callable[[], float]


@dataclass(frozen=True)
class PreflightSummary:
    """Deletion-impact summary gathered before the erasure transaction."""

    user_id: int
    role: str
    is_active: bool
    is_banned: bool
    posts: int = 0
    comments: int = 0
    followers: int = 0
    following: int = 0
    stories: int = 0
    conversations: int = 0

    def to_log_dict(self) -> dict[str, Any]:
        """Counts and flags only; no profile data."""
        return {
            "role": self.role,
            "is_active": self.is_active,
            "is_banned": self.is_banned,
            "posts": self.posts,
            "comments": self.comments,
            "followers": self.followers,
            "following": self.following,
            "stories": self.stories,
            "conversations": self.conversations,
        }


@dataclass
class ErasureResult:
    """
    Outcome of a successful erasure.

    Attributes:
        success: Always True; failures raise instead of returning
        deleted_counts: Rows removed per entity family, plus "user": 1
        duration_ms: Wall time from preflight to commit
        already_deleted: True when a concurrent erasure removed the user
            while this call waited for the per-user lock
    """

    success: bool
    deleted_counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    already_deleted: bool = False

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted_counts.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "deleted_counts": dict(self.deleted_counts),
            "duration_ms": self.duration_ms,
            "already_deleted": self.already_deleted,
        }


class Deadline:
    """
    Monotonic time budget for one erasure transaction.

    The purger checks it before every batch; exceeding it aborts the
    transaction with ErasureTimeoutError.
    """

    def __init__(self, seconds: float, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self.seconds = seconds

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed)

    def expired(self) -> bool:
        return self.elapsed >= self.seconds

    def check(self, user_id: int, family: str | None = None) -> None:
        if self.expired():
            raise ErasureTimeoutError(
                f"Erasure exceeded {self.seconds:.0f}s transaction timeout",
                user_id=user_id,
                elapsed_ms=self.elapsed_ms,
                last_family=family,
            )


__all__ = ["Clock", "Deadline", "ErasureResult", "PreflightSummary"]
