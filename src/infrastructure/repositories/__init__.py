"""
Repository Infrastructure Module

This module provides concrete implementations of the CredentialStore interface:
an in-memory store and a SQLAlchemy-backed relational store.
"""

from .memory_repository import InMemoryCredentialStore
from .user_repository import SqlAlchemyCredentialStore

__all__ = [
    "InMemoryCredentialStore",
    "SqlAlchemyCredentialStore",
]
