"""
Shared authentication types.

Common types used across the authentication system.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class SessionResult:
    """Session issued at the end of a successful authentication flow."""

    user_id: str
    session_token: str
    expires_in: int
    token_type: str = "Bearer"


@dataclass
class UserProfile:
    """Public view of a user account."""

    id: str
    name: str
    email: str
    verified: bool
    created_at: datetime | None
    password_changed_at: datetime | None = None
