"""
User Model for Social Backend.

The user row is the root of ownership for every other user-scoped table.
Foreign keys pointing at it are declared without ON DELETE CASCADE; the
account erasure engine removes dependents explicitly, in order.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from social_backend.models.base import Base, utcnow


class User(Base):
    """
    User account.

    Attributes:
        id: Primary key
        email: Unique login email
        username: Unique public handle
        password_hash: bcrypt hash (never plaintext)
        first_name / last_name / bio: Profile fields
        profile_image / cover_image: CDN paths
        is_active: False once the account is deactivated
        is_banned: Moderation flag (also set during erasure)
        ban_reason: Free-text moderation reason
        is_profile_complete: Onboarding flag
        is_email_verified: Email verification flag
        verification_code / email_verification_token: Pending verification secrets
        reset_password_token / reset_password_token_expires_at: Pending reset secrets
    """

    __tablename__ = "users"

    role = relationship("UserRole", uselist=False, back_populates="user", lazy="joined")

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String(255), unique=True, nullable=False)
    username = Column(String(64), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image = Column(String(500), nullable=True)
    cover_image = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_banned = Column(Boolean, default=False, nullable=False)
    ban_reason = Column(String(255), nullable=True)
    is_profile_complete = Column(Boolean, default=False, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)

    verification_code = Column(String(16), nullable=True)
    email_verification_token = Column(String(128), nullable=True)
    reset_password_token = Column(String(128), nullable=True)
    reset_password_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_user_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, active={self.is_active})>"

    @property
    def role_name(self) -> str | None:
        """Stored role value, or None when the user has no role row."""
        return self.role.role if self.role is not None else None


__all__ = ["User"]
