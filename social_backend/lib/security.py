"""
Security helpers for Social Backend.

Log lines never carry raw user ids; ``hash_uid`` produces a short, stable
pseudonym so that events for one user can still be correlated.
"""

import hashlib


def hash_uid(user_id: int) -> str:
    """Return a 12-char SHA-256 prefix for log-safe user identification."""
    return hashlib.sha256(str(user_id).encode()).hexdigest()[:12]


__all__ = ["hash_uid"]
