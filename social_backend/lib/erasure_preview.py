"""
Read-only erasure preview.

Split from social_backend/lib/erasure.py for maintainability.

The preview covers a smaller, user-facing subset of families than the
cascade, and counts only rows that reference the user directly (for
example, other users' comments on the user's posts are not included in
"comments"). Its numbers are therefore NOT expected to match
ErasureResult.deleted_counts; they are meant for confirmation screens and
support audits.

Each count runs in its own short session. A failing count is logged and
left out of the result so the other counts are still reported.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from social_backend.lib.erasure_schema import FilterBuilder
from social_backend.lib.security import hash_uid
from social_backend.models import (
    Base,
    Comment,
    Conversation,
    Follow,
    FollowRequest,
    Like,
    Message,
    Notification,
    Post,
    SavedPost,
    Story,
    User,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PreviewCounter:
    """One count in the erasure preview."""

    name: str
    model: type[Base]
    build_filter: FilterBuilder

    def count(self, session: Session, user_id: int) -> int:
        query = select(func.count()).select_from(self.model).where(self.build_filter(user_id))
        return int(session.scalar(query) or 0)


PREVIEW_COUNTERS: tuple[PreviewCounter, ...] = (
    PreviewCounter("user", User, lambda uid: User.id == uid),
    PreviewCounter("posts", Post, lambda uid: Post.author_id == uid),
    PreviewCounter("comments", Comment, lambda uid: Comment.author_id == uid),
    PreviewCounter("likes", Like, lambda uid: Like.user_id == uid),
    PreviewCounter("saved_posts", SavedPost, lambda uid: SavedPost.user_id == uid),
    PreviewCounter(
        "follows",
        Follow,
        lambda uid: or_(Follow.follower_id == uid, Follow.following_id == uid),
    ),
    PreviewCounter(
        "follow_requests",
        FollowRequest,
        lambda uid: or_(FollowRequest.sender_id == uid, FollowRequest.receiver_id == uid),
    ),
    PreviewCounter("stories", Story, lambda uid: Story.user_id == uid),
    PreviewCounter(
        "conversations",
        Conversation,
        lambda uid: or_(Conversation.user1_id == uid, Conversation.user2_id == uid),
    ),
    PreviewCounter(
        "messages",
        Message,
        lambda uid: or_(Message.sender_id == uid, Message.recipient_id == uid),
    ),
    PreviewCounter(
        "notifications",
        Notification,
        lambda uid: or_(Notification.user_id == uid, Notification.actor_id == uid),
    ),
)


class ErasurePreviewMixin:
    """Mixin providing the erasure preview for AccountErasureService."""

    def preview_erasure(self, user_id: int) -> dict[str, int]:
        """
        Count what an erasure of ``user_id`` would remove, without writing.

        Counts are a user-facing subset and intentionally differ from the
        cascade's per-family counts. Families whose count query fails are
        omitted from the mapping.
        """
        counts: dict[str, int] = {}
        failed: list[str] = []
        for counter in self._preview_counters:
            try:
                with self._session_factory() as session:
                    counts[counter.name] = counter.count(session, user_id)
            except SQLAlchemyError as e:
                failed.append(counter.name)
                logger.warning(
                    "erasure_preview_count_failed",
                    family=counter.name,
                    user_hash=hash_uid(user_id),
                    error=type(e).__name__,
                )

        logger.info("erasure_preview", user_hash=hash_uid(user_id), counts=counts, failed=failed)
        return counts


__all__ = ["ErasurePreviewMixin", "PREVIEW_COUNTERS", "PreviewCounter"]
