"""
Social graph and notification models for Social Backend.

Follow edges and follow requests reference a user at either endpoint.
Notifications reference a recipient, an optional actor and an optional post.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from social_backend.models.base import Base, utcnow


class Follow(Base):
    """follower_id follows following_id."""

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follow"),
    )


class FollowRequest(Base):
    """Pending follow request towards a private account."""

    __tablename__ = "follow_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(16), default="pending", nullable=False)  # pending | accepted | rejected
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Notification(Base):
    """In-app notification delivered to user_id, triggered by actor_id."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    type = Column(String(32), nullable=False)  # like | comment | follow | mention | message
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


__all__ = ["Follow", "FollowRequest", "Notification"]
