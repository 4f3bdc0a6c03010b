"""
Soft-delete operations for account erasure.

Split from social_backend/lib/erasure.py for maintainability.

``_soft_delete`` is the safety net written first inside the erasure
transaction: it deactivates and bans the account and replaces the unique
identity fields with placeholders. Inside a single transaction it rolls
back together with the cascade; ErasureSettings.commit_soft_delete_first
commits it separately instead.

``soft_delete_only`` is the standalone retention path: the account is
anonymised and deactivated but no rows are removed.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from social_backend.infra.rbac import Role, is_protected
from social_backend.lib.exceptions import ProtectedAccountError, UserNotFoundError
from social_backend.lib.security import hash_uid
from social_backend.models import User

logger = structlog.get_logger(__name__)

DELETION_BAN_REASON = "Account deletion in progress"
DEACTIVATION_BAN_REASON = "Account deleted by user request"
DELETED_EMAIL_DOMAIN = "deleted.invalid"
DELETED_PROFILE_IMAGE = "/uploads/deleted-avatar.png"
DELETED_COVER_IMAGE = "/uploads/deleted-cover.jpg"
DELETED_PASSWORD_HASH = "DELETED"


def placeholder_identity(user_id: int, now: datetime) -> tuple[str, str]:
    """
    Unique (email, username) placeholders for a scrambled account.

    The millisecond timestamp alone can collide between concurrent calls,
    so the user id is part of both values.
    """
    stamp = int(now.timestamp() * 1000)
    return (
        f"deleted-{stamp}-{user_id}@{DELETED_EMAIL_DOMAIN}",
        f"deleted_{stamp}_{user_id}",
    )


class ErasureSoftDeleteMixin:
    """Mixin providing soft-delete operations for AccountErasureService."""

    def _soft_delete(self, session: Session, user_id: int, now: datetime) -> int:
        """Deactivate, ban and scramble the account. Returns rows updated (0 or 1)."""
        email, username = placeholder_identity(user_id, now)
        result = session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                is_active=False,
                is_banned=True,
                ban_reason=DELETION_BAN_REASON,
                email=email,
                username=username,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        logger.info("erasure_soft_delete", user_hash=hash_uid(user_id))
        return int(result.rowcount or 0)

    def _commit_soft_delete(self, user_id: int) -> None:
        """Run the safety-net soft delete in its own short transaction."""
        with self._session_factory() as session, session.begin():
            self._soft_delete(session, user_id, self._now())

    def soft_delete_only(self, user_id: int) -> None:
        """
        Anonymise and deactivate an account without removing any rows.

        Clears credentials and pending tokens and resets profile imagery
        to placeholders.

        Raises:
            UserNotFoundError: No such user
            ProtectedAccountError: The user's role is protected
        """
        logger.info("soft_delete_started", user_hash=hash_uid(user_id))
        with self._session_factory() as session, session.begin():
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(f"User with id {user_id} not found", user_id=user_id)
            if is_protected(Role.parse(user.role_name)):
                raise ProtectedAccountError(
                    "Cannot deactivate administrator accounts through this method.",
                    user_id=user_id,
                )

            now = self._now()
            email, username = placeholder_identity(user_id, now)
            user.is_active = False
            user.is_banned = True
            user.ban_reason = DEACTIVATION_BAN_REASON
            user.email = email
            user.username = username
            user.profile_image = DELETED_PROFILE_IMAGE
            user.cover_image = DELETED_COVER_IMAGE
            user.is_profile_complete = False
            user.password_hash = DELETED_PASSWORD_HASH
            user.verification_code = None
            user.email_verification_token = None
            user.reset_password_token = None
            user.reset_password_token_expires_at = None
            user.updated_at = now

        logger.info("soft_delete_completed", user_hash=hash_uid(user_id))


__all__ = [
    "DEACTIVATION_BAN_REASON",
    "DELETED_COVER_IMAGE",
    "DELETED_EMAIL_DOMAIN",
    "DELETED_PASSWORD_HASH",
    "DELETED_PROFILE_IMAGE",
    "DELETION_BAN_REASON",
    "ErasureSoftDeleteMixin",
    "placeholder_identity",
]
