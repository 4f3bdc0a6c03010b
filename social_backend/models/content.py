"""
Post, comment and engagement models for Social Backend.

Ownership edges to users:
- posts.author_id
- comments.author_id, and comments.post_id -> posts
- comment_likes.user_id, and comment_likes.comment_id -> comments
- comment_author_infos.author_id, and comment_author_infos.comment_id -> comments
- likes.user_id / saved_posts.user_id, and their post_id -> posts
- post_tags.post_id -> posts (tags themselves are global)
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from social_backend.models.base import Base, utcnow


class Post(Base):
    """A user's post."""

    __tablename__ = "posts"

    comments = relationship("Comment", back_populates="post")
    tags = relationship("PostTag", back_populates="post")

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_deleted = Column(Integer, default=0, nullable=False)  # feature-level soft delete flag
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_post_author_created", "author_id", "created_at"),
    )


class Tag(Base):
    """Global hashtag. Not owned by any user."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), unique=True, nullable=False)


class PostTag(Base):
    """Join row between a post and a tag."""

    __tablename__ = "post_tags"

    post = relationship("Post", back_populates="tags")

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("post_id", "tag_id", name="uq_post_tag"),
    )


class Comment(Base):
    """Comment on a post. The commenter may differ from the post author."""

    __tablename__ = "comments"

    post = relationship("Post", back_populates="comments")

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_deleted = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CommentLike(Base):
    """A like on a comment."""

    __tablename__ = "comment_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_like"),
    )


class CommentAuthorInfo(Base):
    """Denormalised author snapshot rendered next to a comment."""

    __tablename__ = "comment_author_infos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=False, unique=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    username = Column(String(64), nullable=False)
    profile_image = Column(String(500), nullable=True)


class Like(Base):
    """A like on a post."""

    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_like"),
    )


class SavedPost(Base):
    """A post bookmarked by a user."""

    __tablename__ = "saved_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_saved_post"),
    )


__all__ = [
    "Post",
    "Tag",
    "PostTag",
    "Comment",
    "CommentLike",
    "CommentAuthorInfo",
    "Like",
    "SavedPost",
]
