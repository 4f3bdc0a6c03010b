"""
Preflight validation for account erasure.

Split from social_backend/lib/erasure.py for maintainability.
Loads the user with counts of its principal collections, refuses protected
accounts, and logs a deletion-impact summary. Read-only.
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.selectable import ScalarSelect

from social_backend.infra.rbac import Role, is_protected
from social_backend.lib.erasure_types import PreflightSummary
from social_backend.lib.exceptions import ProtectedAccountError, UserNotFoundError
from social_backend.lib.security import hash_uid
from social_backend.models import Base, Comment, Conversation, Follow, Post, Story, User

logger = structlog.get_logger(__name__)


def _count(model: type[Base], condition: ColumnElement[bool]) -> ScalarSelect[int]:
    return select(func.count()).select_from(model).where(condition).scalar_subquery()


class ErasurePreflightMixin:
    """Mixin providing the preflight check for AccountErasureService."""

    def validate_deletion(self, user_id: int) -> PreflightSummary:
        """
        Check that ``user_id`` may be erased and summarise what it owns.

        A banned or already-inactive account is logged, not rejected.

        Raises:
            UserNotFoundError: No such user
            ProtectedAccountError: The user's role is protected (administrator)
        """
        with self._session_factory() as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(f"User with id {user_id} not found", user_id=user_id)

            role = Role.parse(user.role_name)
            if is_protected(role):
                raise ProtectedAccountError(
                    "Cannot delete administrator accounts through this method. "
                    "Use the admin-specific deletion process.",
                    user_id=user_id,
                )

            counts = session.execute(
                select(
                    _count(Post, Post.author_id == user_id).label("posts"),
                    _count(Comment, Comment.author_id == user_id).label("comments"),
                    _count(Follow, Follow.following_id == user_id).label("followers"),
                    _count(Follow, Follow.follower_id == user_id).label("following"),
                    _count(Story, Story.user_id == user_id).label("stories"),
                    _count(
                        Conversation,
                        or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id),
                    ).label("conversations"),
                )
            ).one()

            summary = PreflightSummary(
                user_id=user_id,
                role=role.value,
                is_active=bool(user.is_active),
                is_banned=bool(user.is_banned),
                posts=counts.posts,
                comments=counts.comments,
                followers=counts.followers,
                following=counts.following,
                stories=counts.stories,
                conversations=counts.conversations,
            )

        if summary.is_banned or not summary.is_active:
            logger.warning(
                "erasure_already_banned",
                user_hash=hash_uid(user_id),
                is_banned=summary.is_banned,
                is_active=summary.is_active,
            )
        logger.info("erasure_preflight_summary", user_hash=hash_uid(user_id), **summary.to_log_dict())
        return summary


__all__ = ["ErasurePreflightMixin"]
