"""
Configuration package for Social Backend.

Settings are read from ``SOCIAL_*`` environment variables into frozen
dataclasses. Constructors accept explicit overrides for tests.
"""

from social_backend.config.settings import ApiSettings, DatabaseSettings, ErasureSettings

__all__ = ["ApiSettings", "DatabaseSettings", "ErasureSettings"]
