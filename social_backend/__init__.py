"""
Social Backend.

REST backend for a small social network. This package holds the data
model, the account erasure engine and the HTTP layer that exposes it.
"""

__version__ = "0.1.0"
