"""
Cascade plan for account erasure.

The plan is an explicit, ordered tuple of CascadeStep entries, one per
entity family owned (directly or through a parent row) by a user. Order is
leaves first: a family is purged only after every family that can hold a
foreign key into it.

Each filter covers every path by which a row depends on the target user,
including rows written by other users that hang off the target's rows
(another user's comment on the target's post, the other participant's
messages in the target's conversation).

``verify_cascade_plan`` checks the plan against the ORM metadata so a new
table or foreign key cannot silently break erasure.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import MetaData, or_, select
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.selectable import Select

from social_backend.lib.exceptions import CascadePlanError
from social_backend.models import (
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
    User,
    UserActivityLog,
    UserMedia,
    UserRole,
    UserSettings,
    VerificationToken,
)

FilterBuilder = Callable[[int], ColumnElement[bool]]

USER_TABLE = User.__tablename__


@dataclass(frozen=True)
class CascadeStep:
    """One entity family in the erasure cascade."""

    family: str
    model: type[Base]
    build_filter: FilterBuilder

    @property
    def table_name(self) -> str:
        return self.model.__table__.name


# =============================================================================
# Ownership subqueries
# =============================================================================


def _post_ids(user_id: int) -> Select:
    return select(Post.id).where(Post.author_id == user_id)


def _story_ids(user_id: int) -> Select:
    return select(Story.id).where(Story.user_id == user_id)


def _comment_ids(user_id: int) -> Select:
    # Comments written by the user plus every comment on the user's posts
    return select(Comment.id).where(
        or_(Comment.author_id == user_id, Comment.post_id.in_(_post_ids(user_id)))
    )


def _conversation_ids(user_id: int) -> Select:
    return select(Conversation.id).where(
        or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id)
    )


# =============================================================================
# The plan
# =============================================================================

CASCADE_STEPS: tuple[CascadeStep, ...] = (
    # Stories: views, likes and highlights before the story itself
    CascadeStep(
        "story_views",
        StoryView,
        lambda uid: or_(StoryView.viewer_id == uid, StoryView.story_id.in_(_story_ids(uid))),
    ),
    CascadeStep(
        "story_likes",
        StoryLike,
        lambda uid: or_(StoryLike.user_id == uid, StoryLike.story_id.in_(_story_ids(uid))),
    ),
    CascadeStep(
        "story_highlights",
        StoryHighlight,
        lambda uid: or_(StoryHighlight.user_id == uid, StoryHighlight.story_id.in_(_story_ids(uid))),
    ),
    CascadeStep("stories", Story, lambda uid: Story.user_id == uid),
    # Comments: likes and author snapshots before the comment
    CascadeStep(
        "comment_likes",
        CommentLike,
        lambda uid: or_(CommentLike.user_id == uid, CommentLike.comment_id.in_(_comment_ids(uid))),
    ),
    CascadeStep(
        "comment_author_infos",
        CommentAuthorInfo,
        lambda uid: or_(
            CommentAuthorInfo.author_id == uid,
            CommentAuthorInfo.comment_id.in_(_comment_ids(uid)),
        ),
    ),
    CascadeStep(
        "comments",
        Comment,
        lambda uid: or_(Comment.author_id == uid, Comment.post_id.in_(_post_ids(uid))),
    ),
    # Post engagement and post references before tag-join rows and posts
    CascadeStep(
        "likes",
        Like,
        lambda uid: or_(Like.user_id == uid, Like.post_id.in_(_post_ids(uid))),
    ),
    CascadeStep(
        "saved_posts",
        SavedPost,
        lambda uid: or_(SavedPost.user_id == uid, SavedPost.post_id.in_(_post_ids(uid))),
    ),
    CascadeStep(
        "notifications",
        Notification,
        lambda uid: or_(
            Notification.user_id == uid,
            Notification.actor_id == uid,
            Notification.post_id.in_(_post_ids(uid)),
        ),
    ),
    CascadeStep("post_tags", PostTag, lambda uid: PostTag.post_id.in_(_post_ids(uid))),
    CascadeStep("posts", Post, lambda uid: Post.author_id == uid),
    # Messaging: messages before their conversation
    CascadeStep(
        "messages",
        Message,
        lambda uid: or_(
            Message.sender_id == uid,
            Message.recipient_id == uid,
            Message.conversation_id.in_(_conversation_ids(uid)),
        ),
    ),
    CascadeStep(
        "conversations",
        Conversation,
        lambda uid: or_(Conversation.user1_id == uid, Conversation.user2_id == uid),
    ),
    # Social graph: either endpoint
    CascadeStep(
        "follow_requests",
        FollowRequest,
        lambda uid: or_(FollowRequest.sender_id == uid, FollowRequest.receiver_id == uid),
    ),
    CascadeStep(
        "follows",
        Follow,
        lambda uid: or_(Follow.follower_id == uid, Follow.following_id == uid),
    ),
    # Account, session and audit rows: no dependents
    CascadeStep("user_media", UserMedia, lambda uid: UserMedia.user_id == uid),
    CascadeStep("user_activity_logs", UserActivityLog, lambda uid: UserActivityLog.user_id == uid),
    CascadeStep("reports", Report, lambda uid: Report.reporter_id == uid),
    CascadeStep("user_settings", UserSettings, lambda uid: UserSettings.user_id == uid),
    CascadeStep("user_roles", UserRole, lambda uid: UserRole.user_id == uid),
    CascadeStep("verification_tokens", VerificationToken, lambda uid: VerificationToken.user_id == uid),
    CascadeStep("sessions", Session, lambda uid: Session.user_id == uid),
)


def cascade_families(steps: Iterable[CascadeStep] = CASCADE_STEPS) -> list[str]:
    """Family names in execution order."""
    return [step.family for step in steps]


# =============================================================================
# Plan verification
# =============================================================================


def _referencing_tables(metadata: MetaData) -> dict[str, set[str]]:
    """Map each table name to the set of other tables holding a FK into it."""
    referencing: dict[str, set[str]] = {name: set() for name in metadata.tables}
    for table in metadata.sorted_tables:
        for fk in table.foreign_keys:
            target = fk.column.table.name
            if target != table.name:
                referencing.setdefault(target, set()).add(table.name)
    return referencing


def user_owned_tables(metadata: MetaData = Base.metadata) -> set[str]:
    """Tables that reference the users table directly or through another owned table."""
    referencing = _referencing_tables(metadata)
    owned: set[str] = set()
    frontier = [USER_TABLE]
    while frontier:
        parent = frontier.pop()
        for child in referencing.get(parent, set()):
            if child not in owned and child != USER_TABLE:
                owned.add(child)
                frontier.append(child)
    return owned


def verify_cascade_plan(
    steps: Iterable[CascadeStep] = CASCADE_STEPS,
    metadata: MetaData = Base.metadata,
) -> None:
    """
    Check coverage and ordering of a cascade plan against ORM metadata.

    Coverage: every user-owned table has exactly one step, and no step
    targets a table that is not user-owned.
    Ordering: every owned table holding a FK into a step's table is purged
    by an earlier step.

    Raises:
        CascadePlanError: With every problem found, one per line.
    """
    steps = list(steps)
    problems: list[str] = []

    owned = user_owned_tables(metadata)
    position: dict[str, int] = {}
    for index, step in enumerate(steps):
        table = step.table_name
        if table in position:
            problems.append(f"table '{table}' is purged by more than one step")
            continue
        if table == USER_TABLE:
            problems.append("the users table must not be a cascade step")
        elif table not in owned:
            problems.append(f"step '{step.family}' targets '{table}', which is not user-owned")
        position[table] = index

    for table in sorted(owned - position.keys()):
        problems.append(f"user-owned table '{table}' has no cascade step")

    referencing = _referencing_tables(metadata)
    for table, index in position.items():
        for child in sorted(referencing.get(table, set()) & owned):
            child_index = position.get(child)
            if child_index is not None and child_index > index:
                problems.append(
                    f"'{child}' references '{table}' but is purged after it "
                    f"(step {child_index} > {index})"
                )

    if problems:
        raise CascadePlanError("Invalid erasure cascade plan:\n" + "\n".join(problems))


__all__ = [
    "CASCADE_STEPS",
    "CascadeStep",
    "FilterBuilder",
    "USER_TABLE",
    "cascade_families",
    "user_owned_tables",
    "verify_cascade_plan",
]
