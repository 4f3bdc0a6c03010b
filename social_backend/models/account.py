"""
Account, session and audit models for Social Backend.

None of these tables is referenced by another user-owned table, so they
are the last dependents removed before the user row itself.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from social_backend.models.base import Base, utcnow


class UserSettings(Base):
    """Per-user preferences."""

    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    is_private = Column(Boolean, default=False, nullable=False)
    language = Column(String(10), default="en", nullable=False)
    email_notifications = Column(Boolean, default=True, nullable=False)
    push_notifications = Column(Boolean, default=True, nullable=False)


class UserRole(Base):
    """Role assignment. Stored values are matched case-insensitively."""

    __tablename__ = "user_roles"

    user = relationship("User", back_populates="role")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    role = Column(String(20), default="user", nullable=False)  # user | moderator | admin


class VerificationToken(Base):
    """One-time token for email verification or password reset."""

    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(128), unique=True, nullable=False)
    purpose = Column(String(32), nullable=False)  # verify_email | reset_password
    expires_at = Column(DateTime(timezone=True), nullable=False)


class Session(Base):
    """Login session (refresh token family)."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token_hash = Column(String(128), unique=True, nullable=False)
    user_agent = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class UserMedia(Base):
    """Uploaded media owned by a user (profile/cover images, attachments)."""

    __tablename__ = "user_media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    kind = Column(String(32), nullable=False)  # profile | cover | post | story
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class UserActivityLog(Base):
    """Audit trail of account actions."""

    __tablename__ = "user_activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(64), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Report(Base):
    """
    Moderation report filed by reporter_id.

    The reported subject is a loose (subject_type, subject_id) reference so
    that reports never block deletion of the reported content.
    """

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subject_type = Column(String(32), nullable=False)  # user | post | comment | story
    subject_id = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(16), default="open", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


__all__ = [
    "UserSettings",
    "UserRole",
    "VerificationToken",
    "Session",
    "UserMedia",
    "UserActivityLog",
    "Report",
]
