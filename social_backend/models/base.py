"""
SQLAlchemy Base for Social Backend.

This module provides the declarative base for all SQLAlchemy models.

Usage:
    from social_backend.models.base import Base

    class MyModel(Base):
        __tablename__ = "my_table"
        ...
"""

from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every model."""


def utcnow() -> datetime:
    """Timezone-aware current time used for column defaults."""
    return datetime.now(UTC)


__all__ = ["Base", "utcnow"]
