"""
Models package for Social Backend.

This package exports all SQLAlchemy models. Importing it registers every
table on ``Base.metadata``.

Usage:
    from social_backend.models import User, Post, Comment, Story
"""

from social_backend.models.base import Base
from social_backend.models.user import User
from social_backend.models.content import (
    Comment,
    CommentAuthorInfo,
    CommentLike,
    Like,
    Post,
    PostTag,
    SavedPost,
    Tag,
)
from social_backend.models.story import Story, StoryHighlight, StoryLike, StoryView
from social_backend.models.social import Follow, FollowRequest, Notification
from social_backend.models.messaging import Conversation, Message
from social_backend.models.account import (
    Report,
    Session,
    UserActivityLog,
    UserMedia,
    UserRole,
    UserSettings,
    VerificationToken,
)

__all__ = [
    # Base
    "Base",
    # Core
    "User",
    # Content
    "Post",
    "Tag",
    "PostTag",
    "Comment",
    "CommentLike",
    "CommentAuthorInfo",
    "Like",
    "SavedPost",
    # Stories
    "Story",
    "StoryView",
    "StoryLike",
    "StoryHighlight",
    # Social graph
    "Follow",
    "FollowRequest",
    "Notification",
    # Messaging
    "Conversation",
    "Message",
    # Account
    "UserSettings",
    "UserRole",
    "VerificationToken",
    "Session",
    "UserMedia",
    "UserActivityLog",
    "Report",
]
