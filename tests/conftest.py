"""
Shared test fixtures for Social Backend.

This module provides common fixtures used across all test modules:
- Environment setup (dev mode, API secret)
- In-memory SQLite engine with foreign keys enforced, and its session factory
- AccountErasureService wired for tests (no batch pauses)
- A seeding helper that builds a target user, the users around them, and
  rows in every erasure family

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# ---------------------------------------------------------------------------
# 1. Environment setup -- must run before any application imports
# ---------------------------------------------------------------------------

os.environ.setdefault("SOCIAL_DEV_MODE", "1")
os.environ.setdefault("SOCIAL_API_SECRET_KEY", "test-secret-key-for-social-backend")

# ---------------------------------------------------------------------------
# Application imports (after env vars are set)
# ---------------------------------------------------------------------------

from social_backend.config.settings import ErasureSettings  # noqa: E402
from social_backend.lib.database import enable_sqlite_foreign_keys  # noqa: E402
from social_backend.lib.erasure import AccountErasureService  # noqa: E402
from social_backend.lib.erasure_purger import BatchedTablePurger  # noqa: E402
from social_backend.models import (  # noqa: E402
    Base,
    Comment,
    CommentAuthorInfo,
    CommentLike,
    Conversation,
    Follow,
    FollowRequest,
    Like,
    Message,
    Notification,
    Post,
    PostTag,
    Report,
    SavedPost,
    Session,
    Story,
    StoryHighlight,
    StoryLike,
    StoryView,
    Tag,
    User,
    UserActivityLog,
    UserMedia,
    UserRole,
    UserSettings,
    VerificationToken,
)
from social_backend.models.base import utcnow  # noqa: E402

# ---------------------------------------------------------------------------
# 2. Database -- one in-memory SQLite database per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    """
    In-memory SQLite engine with FK enforcement.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    """A plain session for arranging and asserting test data."""
    session = session_factory()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# 3. Erasure service
# ---------------------------------------------------------------------------


@pytest.fixture()
def erasure_settings():
    return ErasureSettings(batch_size=1000, batch_delay_ms=0)


@pytest.fixture()
def sleeps():
    """Records every pause requested by the purger."""
    return []


@pytest.fixture()
def purger(erasure_settings, sleeps):
    return BatchedTablePurger(
        batch_size=erasure_settings.batch_size,
        batch_delay_ms=erasure_settings.batch_delay_ms,
        sleep=sleeps.append,
    )


@pytest.fixture()
def service(session_factory, erasure_settings, purger):
    return AccountErasureService(session_factory, erasure_settings, purger=purger)


# ---------------------------------------------------------------------------
# 4. Seeding
# ---------------------------------------------------------------------------


@dataclass
class SeededGraph:
    """Ids of the users built by ``seed_graph``."""

    target_id: int
    other_id: int
    third_id: int


def add_user(session, username: str, role: str | None = "user", **fields) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        password_hash="hashed",
        profile_image=f"/uploads/{username}.png",
        verification_code="123456",
        reset_password_token=f"reset-{username}",
        **fields,
    )
    session.add(user)
    session.flush()
    if role is not None:
        session.add(UserRole(user_id=user.id, role=role))
        session.flush()
    return user


def seed_graph(session, target_role: str = "user") -> SeededGraph:
    """
    Build a target user with rows in every erasure family.

    ``other`` interacts with the target in every direction; ``third`` only
    interacts with ``other``. Rows between other and third must survive
    the target's erasure.
    """
    target = add_user(session, "target", role=target_role)
    other = add_user(session, "other")
    third = add_user(session, "third")
    t, o, th = target.id, other.id, third.id
    expires = utcnow() + timedelta(days=1)

    # Account rows
    session.add_all([
        UserSettings(user_id=t),
        UserSettings(user_id=o),
        VerificationToken(user_id=t, token="tok-target", purpose="verify_email", expires_at=expires),
        Session(user_id=t, token_hash="sess-target", expires_at=expires),
        Session(user_id=o, token_hash="sess-other", expires_at=expires),
        UserMedia(user_id=t, url="/uploads/t1.png", kind="post"),
        UserActivityLog(user_id=t, action="login", details={"ip": "10.0.0.1"}),
        Report(reporter_id=t, subject_type="post", subject_id=999, reason="spam"),
        # A report about the target, by someone else, survives
        Report(reporter_id=o, subject_type="user", subject_id=t, reason="abuse"),
    ])
    session.flush()

    # Posts and engagement
    tag = Tag(name="travel")
    target_post = Post(author_id=t, content="target post")
    other_post = Post(author_id=o, content="other post")
    session.add_all([tag, target_post, other_post])
    session.flush()

    other_comment_on_target_post = Comment(post_id=target_post.id, author_id=o, content="nice")
    target_comment_on_other_post = Comment(post_id=other_post.id, author_id=t, content="hi")
    other_comment_on_own_post = Comment(post_id=other_post.id, author_id=o, content="thanks")
    session.add_all([
        other_comment_on_target_post,
        target_comment_on_other_post,
        other_comment_on_own_post,
    ])
    session.flush()

    session.add_all([
        PostTag(post_id=target_post.id, tag_id=tag.id),
        PostTag(post_id=other_post.id, tag_id=tag.id),
        Like(post_id=target_post.id, user_id=o),
        Like(post_id=other_post.id, user_id=t),
        Like(post_id=other_post.id, user_id=th),
        SavedPost(post_id=target_post.id, user_id=o),
        SavedPost(post_id=other_post.id, user_id=t),
        CommentLike(comment_id=other_comment_on_target_post.id, user_id=th),
        CommentLike(comment_id=target_comment_on_other_post.id, user_id=o),
        CommentLike(comment_id=other_comment_on_own_post.id, user_id=t),
        CommentLike(comment_id=other_comment_on_own_post.id, user_id=th),
        CommentAuthorInfo(comment_id=other_comment_on_target_post.id, author_id=o, username="other"),
        CommentAuthorInfo(comment_id=target_comment_on_other_post.id, author_id=t, username="target"),
        CommentAuthorInfo(comment_id=other_comment_on_own_post.id, author_id=o, username="other"),
        Notification(user_id=t, actor_id=o, post_id=target_post.id, type="like"),
        Notification(user_id=o, actor_id=t, post_id=other_post.id, type="comment"),
        Notification(user_id=th, actor_id=o, post_id=target_post.id, type="comment"),
        Notification(user_id=o, actor_id=th, post_id=other_post.id, type="like"),
    ])

    # Stories
    target_story = Story(user_id=t, media_url="/stories/t.mp4")
    other_story = Story(user_id=o, media_url="/stories/o.mp4")
    session.add_all([target_story, other_story])
    session.flush()
    session.add_all([
        StoryView(story_id=target_story.id, viewer_id=o),
        StoryView(story_id=other_story.id, viewer_id=t),
        StoryView(story_id=other_story.id, viewer_id=th),
        StoryLike(story_id=target_story.id, user_id=o),
        StoryLike(story_id=other_story.id, user_id=t),
        StoryHighlight(story_id=target_story.id, user_id=t, title="summer"),
        StoryHighlight(story_id=other_story.id, user_id=o, title="mine"),
    ])

    # Social graph
    session.add_all([
        Follow(follower_id=t, following_id=o),
        Follow(follower_id=o, following_id=t),
        Follow(follower_id=o, following_id=th),
        FollowRequest(sender_id=t, receiver_id=th),
        FollowRequest(sender_id=o, receiver_id=t),
        FollowRequest(sender_id=th, receiver_id=o),
    ])

    # Messaging
    target_conversation = Conversation(user1_id=t, user2_id=o)
    other_conversation = Conversation(user1_id=o, user2_id=th)
    session.add_all([target_conversation, other_conversation])
    session.flush()
    session.add_all([
        Message(conversation_id=target_conversation.id, sender_id=t, recipient_id=o, content="hey"),
        Message(conversation_id=target_conversation.id, sender_id=o, recipient_id=t, content="yo"),
        Message(conversation_id=other_conversation.id, sender_id=o, recipient_id=th, content="hello"),
    ])

    session.commit()
    return SeededGraph(target_id=t, other_id=o, third_id=th)


def table_counts(session) -> dict[str, int]:
    """Row count of every table, keyed by table name."""
    return {
        name: session.scalar(select(func.count()).select_from(table))
        for name, table in Base.metadata.tables.items()
    }


@pytest.fixture()
def seeded(db_session):
    return seed_graph(db_session)


@pytest.fixture()
def make_user(db_session):
    """Factory: ``make_user("alice", role="admin")`` adds and commits a user."""

    def _make(username: str, role: str | None = "user", **fields) -> User:
        user = add_user(db_session, username, role=role, **fields)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def seed(db_session):
    """Factory form of ``seeded`` for tests that need a non-default target role."""

    def _seed(target_role: str = "user") -> SeededGraph:
        return seed_graph(db_session, target_role=target_role)

    return _seed


@pytest.fixture()
def count_tables(session_factory):
    """Return a fresh per-table row count snapshot."""

    def _count() -> dict[str, int]:
        with session_factory() as session:
            return table_counts(session)

    return _count
