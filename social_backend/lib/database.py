"""
Database engine and session factory for Social Backend.

The erasure engine and the HTTP layer receive a ``sessionmaker`` rather
than reaching for a process-wide client, so tests can hand each case its
own isolated engine.

Usage:
    from social_backend.lib.database import DatabaseManager

    manager = DatabaseManager(DatabaseSettings.from_env())
    session_factory = manager.get_session_factory()
    with session_factory() as session:
        ...
    manager.dispose()
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker

from social_backend.config.settings import DatabaseSettings
from social_backend.lib.exceptions import DatabaseError

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """
    Turn on FK enforcement for every new SQLite connection.

    SQLite ships with foreign keys disabled; without this the erasure
    ordering could never be violated and therefore never tested.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(settings: DatabaseSettings, **engine_kwargs: Any) -> Engine:
    """
    Create an engine for the configured URL.

    Raises:
        DatabaseError: The URL is malformed, names an unknown dialect, or
            its DBAPI driver is not installed
    """
    is_sqlite = settings.url.startswith("sqlite")
    kwargs: dict[str, Any] = {"echo": settings.echo}
    if not is_sqlite:
        kwargs["pool_timeout"] = settings.pool_timeout_seconds
        kwargs["pool_pre_ping"] = True
    kwargs.update(engine_kwargs)

    try:
        engine = create_engine(settings.url, **kwargs)
    except (ArgumentError, ImportError) as e:
        # str(url) would leak the password; only log the scheme
        scheme = settings.url.split(":", 1)[0]
        logger.error("Database engine could not be created (scheme: %s): %s", scheme, type(e).__name__)
        raise DatabaseError(f"Cannot create database engine for scheme {scheme!r}: {type(e).__name__}") from e
    if is_sqlite:
        enable_sqlite_foreign_keys(engine)
    logger.info("Database engine created (dialect: %s)", engine.dialect.name)
    return engine


class DatabaseManager:
    """Owns one engine and its session factory."""

    def __init__(self, settings: DatabaseSettings | None = None) -> None:
        self._settings = settings or DatabaseSettings.from_env()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    def get_engine(self) -> Engine:
        if self._engine is None:
            self._engine = build_engine(self._settings)
        return self._engine

    def get_session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.get_engine(),
                expire_on_commit=False,
            )
        return self._session_factory

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


__all__ = ["DatabaseManager", "build_engine", "enable_sqlite_foreign_keys"]
