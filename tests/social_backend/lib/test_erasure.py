"""
Unit tests for AccountErasureService.erase_user.

These tests verify:
- Referential closure: nothing referencing the target survives
- Unrelated rows between other users survive
- Atomicity: an injected failure leaves the database unchanged
- Protected accounts are refused before any write
- The per-user lock and in-transaction re-check resolve racing erasures
- The transaction deadline aborts and rolls back
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from social_backend.config.settings import ErasureSettings
from social_backend.lib.erasure import USER_FAMILY, AccountErasureService
from social_backend.lib.erasure_locks import ErasureLock, LocalErasureLock
from social_backend.lib.erasure_purger import BatchedTablePurger
from social_backend.lib.erasure_schema import CASCADE_STEPS, cascade_families
from social_backend.lib.erasure_soft_delete import DELETION_BAN_REASON
from social_backend.lib.exceptions import (
    AlreadyDeletedError,
    ErasureTimeoutError,
    ProtectedAccountError,
    ReferentialOrderingViolationError,
    UnknownErasureError,
    UserNotFoundError,
)
from social_backend.models import (
    Base,
    Comment,
    CommentLike,
    Conversation,
    Follow,
    Like,
    Message,
    Notification,
    Post,
    Report,
    Story,
    StoryView,
    User,
)

EXPECTED_TARGET_COUNTS = {
    "story_views": 2,
    "story_likes": 2,
    "story_highlights": 1,
    "stories": 1,
    "comment_likes": 3,
    "comment_author_infos": 2,
    "comments": 2,
    "likes": 2,
    "saved_posts": 2,
    "notifications": 3,
    "post_tags": 1,
    "posts": 1,
    "messages": 2,
    "conversations": 1,
    "follow_requests": 2,
    "follows": 2,
    "user_media": 1,
    "user_activity_logs": 1,
    "reports": 1,
    "user_settings": 1,
    "user_roles": 1,
    "verification_tokens": 1,
    "sessions": 1,
    "user": 1,
}


def _user_references(session, user_id: int) -> dict[str, int]:
    """Count rows in every column holding a foreign key to users.id."""
    found: dict[str, int] = {}
    for table in Base.metadata.sorted_tables:
        for column in table.columns:
            if any(fk.column.table.name == "users" for fk in column.foreign_keys):
                n = session.scalar(
                    select(func.count()).select_from(table).where(column == user_id)
                )
                if n:
                    found[f"{table.name}.{column.name}"] = n
    return found


class FailingPurger(BatchedTablePurger):
    """Raises a store error when it reaches ``fail_on``."""

    def __init__(self, fail_on: str, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on

    def delete_batch(self, session, step, user_id):
        if step.family == self.fail_on:
            raise OperationalError("DELETE FROM comments", {}, Exception("disk I/O error"))
        return super().delete_batch(session, step, user_id)


# =============================================================================
# TestReferentialClosure
# =============================================================================


class TestReferentialClosure:
    """A successful erasure leaves no row referencing the user."""

    def test_user_row_removed(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            assert session.get(User, seeded.target_id) is None

    def test_no_foreign_key_references_remain(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            assert _user_references(session, seeded.target_id) == {}

    def test_every_family_filter_is_empty(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            for step in CASCADE_STEPS:
                remaining = session.scalar(
                    select(func.count())
                    .select_from(step.model)
                    .where(step.build_filter(seeded.target_id))
                )
                assert remaining == 0, step.family

    def test_result_counts_per_family(self, service, seeded):
        result = service.erase_user(seeded.target_id)
        assert result.success is True
        assert result.already_deleted is False
        assert result.deleted_counts == EXPECTED_TARGET_COUNTS
        assert result.duration_ms >= 0

    def test_counts_cover_every_family_in_order(self, service, seeded):
        result = service.erase_user(seeded.target_id)
        assert list(result.deleted_counts) == cascade_families() + [USER_FAMILY]

    def test_user_with_no_content(self, service, make_user):
        lonely = make_user("lonely", role=None)
        result = service.erase_user(lonely.id)
        assert result.deleted_counts[USER_FAMILY] == 1
        assert result.total_deleted == 1


# =============================================================================
# TestUnrelatedRowsSurvive
# =============================================================================


class TestUnrelatedRowsSurvive:
    """Rows that do not reference the target are untouched."""

    def test_other_users_survive(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            assert session.get(User, seeded.other_id) is not None
            assert session.get(User, seeded.third_id) is not None

    def test_other_users_content_survives(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Post)) == 1
            assert session.scalar(select(func.count()).select_from(Story)) == 1
            assert session.scalar(
                select(func.count()).select_from(Comment).where(Comment.author_id == seeded.other_id)
            ) == 1
            assert session.scalar(select(func.count()).select_from(CommentLike)) == 1
            assert session.scalar(
                select(func.count()).select_from(Like).where(Like.user_id == seeded.third_id)
            ) == 1

    def test_relationships_between_others_survive(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            follow = session.scalar(select(Follow))
            assert (follow.follower_id, follow.following_id) == (seeded.other_id, seeded.third_id)
            conversation = session.scalar(select(Conversation))
            assert {conversation.user1_id, conversation.user2_id} == {seeded.other_id, seeded.third_id}
            assert session.scalar(select(func.count()).select_from(Message)) == 1
            assert session.scalar(select(func.count()).select_from(StoryView)) == 1
            notification = session.scalar(select(Notification))
            assert notification.actor_id == seeded.third_id

    def test_reports_about_the_user_survive(self, service, seeded, session_factory):
        service.erase_user(seeded.target_id)
        with session_factory() as session:
            report = session.scalar(select(Report))
            assert report.reporter_id == seeded.other_id
            assert report.subject_id == seeded.target_id


# =============================================================================
# TestAtomicity
# =============================================================================


class TestAtomicity:
    """A failure at any step leaves the database exactly as it was."""

    def _service(self, session_factory, fail_on: str) -> AccountErasureService:
        return AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0),
            purger=FailingPurger(fail_on, batch_delay_ms=0),
        )

    def test_failure_rolls_back_everything(self, session_factory, seeded, count_tables):
        before = count_tables()
        service = self._service(session_factory, "comments")

        with pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        assert count_tables() == before

    def test_failure_rolls_back_soft_delete(self, session_factory, seeded):
        service = self._service(session_factory, "comments")

        with pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        with session_factory() as session:
            user = session.get(User, seeded.target_id)
            assert user.email == "target@example.com"
            assert user.is_active is True
            assert user.is_banned is False

    def test_error_carries_context(self, session_factory, seeded):
        service = self._service(session_factory, "comments")

        with pytest.raises(UnknownErasureError) as exc_info:
            service.erase_user(seeded.target_id)

        err = exc_info.value
        assert err.user_id == seeded.target_id
        assert err.last_family == "comments"
        assert err.elapsed_ms is not None
        assert isinstance(err.__cause__, OperationalError)

    def test_failure_on_first_family(self, session_factory, seeded, count_tables):
        before = count_tables()
        service = self._service(session_factory, CASCADE_STEPS[0].family)

        with pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        assert count_tables() == before

    def test_commit_soft_delete_first_keeps_account_deactivated(self, session_factory, seeded):
        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0, commit_soft_delete_first=True),
            purger=FailingPurger("posts", batch_delay_ms=0),
        )

        with pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        with session_factory() as session:
            user = session.get(User, seeded.target_id)
            assert user.is_active is False
            assert user.is_banned is True
            assert user.ban_reason == DELETION_BAN_REASON
            assert session.scalar(select(func.count()).select_from(Post)) == 2


# =============================================================================
# TestOrderingViolation
# =============================================================================


class TestOrderingViolation:
    """A plan that purges a parent before its children fails closed."""

    def test_misordered_plan_is_classified(self, session_factory, seeded, count_tables):
        steps = list(CASCADE_STEPS)
        posts = next(s for s in steps if s.family == "posts")
        steps.remove(posts)
        steps.insert(0, posts)
        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0, validate_schema_on_startup=False),
            steps=steps,
        )
        before = count_tables()

        with pytest.raises(ReferentialOrderingViolationError) as exc_info:
            service.erase_user(seeded.target_id)

        assert exc_info.value.last_family == "posts"
        assert count_tables() == before


# =============================================================================
# TestPreflightRejection
# =============================================================================


class TestPreflightRejection:
    """Missing or protected users are refused before any write."""

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError) as exc_info:
            service.erase_user(424242)
        assert exc_info.value.user_id == 424242

    def test_admin_is_protected(self, service, seed, count_tables):
        graph = seed(target_role="admin")
        before = count_tables()

        with pytest.raises(ProtectedAccountError):
            service.erase_user(graph.target_id)

        assert count_tables() == before

    def test_admin_role_matched_case_insensitively(self, service, make_user, session_factory):
        admin = make_user("legacy_admin", role="ADMIN")

        with pytest.raises(ProtectedAccountError):
            service.erase_user(admin.id)

        with session_factory() as session:
            user = session.get(User, admin.id)
            assert user.email == "legacy_admin@example.com"
            assert user.is_active is True

    def test_banned_user_can_be_erased(self, service, make_user):
        banned = make_user("banned", is_banned=True, is_active=False)
        result = service.erase_user(banned.id)
        assert result.success is True

    def test_second_erasure_is_not_found(self, service, seeded):
        service.erase_user(seeded.target_id)
        with pytest.raises(UserNotFoundError):
            service.erase_user(seeded.target_id)


# =============================================================================
# TestSoftDeleteGuard
# =============================================================================


class RecordingPurger(BatchedTablePurger):
    """Captures the target user's row as seen at the first purge step."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.snapshots: list[tuple] = []

    def purge(self, session, step, user_id, deadline=None):
        if not self.snapshots:
            row = session.execute(
                select(User.is_active, User.is_banned, User.email).where(User.id == user_id)
            ).one()
            self.snapshots.append(tuple(row))
        return super().purge(session, step, user_id, deadline)


class TestSoftDeleteGuard:
    """The soft delete is the first write inside the transaction."""

    def test_guard_runs_before_cascade(self, session_factory, seeded):
        purger = RecordingPurger(batch_delay_ms=0)
        service = AccountErasureService(session_factory, ErasureSettings(batch_delay_ms=0), purger=purger)

        service.erase_user(seeded.target_id)

        is_active, is_banned, email = purger.snapshots[0]
        assert is_active is False
        assert is_banned is True
        assert email.endswith("@deleted.invalid")

    def test_guard_can_be_disabled_per_call(self, session_factory, seeded):
        purger = RecordingPurger(batch_delay_ms=0)
        service = AccountErasureService(session_factory, ErasureSettings(batch_delay_ms=0), purger=purger)

        service.erase_user(seeded.target_id, soft_delete_guard=False)

        is_active, is_banned, email = purger.snapshots[0]
        assert is_active is True
        assert is_banned is False
        assert email == "target@example.com"


# =============================================================================
# TestConcurrentErasure
# =============================================================================


class WinnerFirstLock(ErasureLock):
    """Lets a competing erasure finish first while this one waits on the lock."""

    def __init__(self, winner: AccountErasureService | None):
        self.winner = winner

    @contextmanager
    def guard(self, user_id, timeout_seconds):
        winner, self.winner = self.winner, None
        if winner is not None:
            winner.erase_user(user_id)
        yield


class UserVanishingPurger(BatchedTablePurger):
    """Removes the user row behind the service's back after the last step."""

    def purge(self, session, step, user_id, deadline=None):
        deleted = super().purge(session, step, user_id, deadline)
        if step.family == CASCADE_STEPS[-1].family:
            session.execute(User.__table__.delete().where(User.__table__.c.id == user_id))
        return deleted


class TestConcurrentErasure:
    """Racing erasures of the same user: one succeeds, the other is a no-op."""

    def test_loser_reports_already_deleted(self, session_factory, seeded):
        settings = ErasureSettings(batch_delay_ms=0)
        winner = AccountErasureService(session_factory, settings)
        loser = AccountErasureService(session_factory, settings, lock=WinnerFirstLock(winner))

        result = loser.erase_user(seeded.target_id)

        assert result.success is True
        assert result.already_deleted is True
        assert result.deleted_counts == {}

    def test_final_delete_without_row_raises(self, session_factory, seeded, count_tables):
        before = count_tables()
        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0),
            purger=UserVanishingPurger(batch_delay_ms=0),
        )

        with pytest.raises(AlreadyDeletedError) as exc_info:
            service.erase_user(seeded.target_id)

        assert exc_info.value.last_family == USER_FAMILY
        assert count_tables() == before

    def test_lock_released_after_erasure(self, session_factory, seeded):
        lock = LocalErasureLock()
        service = AccountErasureService(session_factory, ErasureSettings(batch_delay_ms=0), lock=lock)

        service.erase_user(seeded.target_id)

        assert lock.is_held(seeded.target_id) is False

    def test_lock_released_after_failure(self, session_factory, seeded):
        lock = LocalErasureLock()
        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0),
            purger=FailingPurger("likes", batch_delay_ms=0),
            lock=lock,
        )

        with pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        assert lock.is_held(seeded.target_id) is False


# =============================================================================
# TestTransactionDeadline
# =============================================================================


class TestTransactionDeadline:
    """Exceeding the transaction timeout aborts and rolls back."""

    def test_deadline_rolls_back(self, session_factory, seeded, count_tables):
        ticks = itertools.count(0, 100)
        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0, transaction_timeout_seconds=300),
            clock=lambda: float(next(ticks)),
        )
        before = count_tables()

        with pytest.raises(ErasureTimeoutError) as exc_info:
            service.erase_user(seeded.target_id)

        assert exc_info.value.retryable is True
        assert exc_info.value.last_family is not None
        assert count_tables() == before


# =============================================================================
# TestErasureLogging
# =============================================================================


class TestErasureLogging:
    """Structured events emitted around an erasure; user ids are hashed."""

    def test_success_events(self, service, seeded):
        from structlog.testing import capture_logs

        from social_backend.lib.security import hash_uid

        with capture_logs() as logs:
            service.erase_user(seeded.target_id)

        events = [entry["event"] for entry in logs]
        assert events[0] == "erasure_started"
        assert "erasure_preflight_summary" in events
        assert "erasure_soft_delete" in events
        assert events.count("erasure_family_purged") == len(CASCADE_STEPS)
        assert events[-1] == "erasure_completed"
        assert all(entry.get("user_hash") == hash_uid(seeded.target_id) for entry in logs)
        assert all("user_id" not in entry for entry in logs)

    def test_rejection_is_a_warning(self, service):
        from structlog.testing import capture_logs

        with capture_logs() as logs, pytest.raises(UserNotFoundError):
            service.erase_user(1234)

        rejected = [entry for entry in logs if entry["event"] == "erasure_rejected"]
        assert rejected[0]["log_level"] == "warning"
        assert rejected[0]["error"] == "user_not_found"

    def test_failure_is_an_error(self, session_factory, seeded):
        from structlog.testing import capture_logs

        service = AccountErasureService(
            session_factory,
            ErasureSettings(batch_delay_ms=0),
            purger=FailingPurger("comments", batch_delay_ms=0),
        )

        with capture_logs() as logs, pytest.raises(UnknownErasureError):
            service.erase_user(seeded.target_id)

        failed = [entry for entry in logs if entry["event"] == "erasure_failed"]
        assert failed[0]["log_level"] == "error"
        assert failed[0]["last_family"] == "comments"
        assert failed[0]["retryable"] is False
