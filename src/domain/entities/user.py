"""
User Entity - Account credentials and the authentication state carried between requests
"""

from __future__ import annotations

# Standard library imports
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import uuid4


class OtpPurpose(Enum):
    """Authentication flow a one-time code is scoped to"""

    REGISTRATION = "registration"
    LOGIN = "login"
    PASSWORD_RESET = "password_reset"


@dataclass
class PendingOtp:
    """
    The single live one-time code of a user.

    Only the hash of the code is kept. `attempts` counts failed verifications
    against this code and is reset whenever a new code is issued.
    """

    code_hash: str
    purpose: OtpPurpose
    created_at: datetime
    expires_at: datetime
    last_sent_at: datetime
    attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        """Check whether the code is past its expiry."""
        return now > self.expires_at

    def is_locked(self, max_attempts: int) -> bool:
        """Check whether the code has used up its verification attempts."""
        return self.attempts >= max_attempts


@dataclass
class ResetToken:
    """Hashed password reset token issued after a reset code was verified."""

    token_hash: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Check whether the token is past its expiry."""
        return now > self.expires_at


@dataclass
class User:
    """
    User account as seen by the authentication core.

    `version` is owned by the credential store: it is bumped by every
    successful conditional write and is what concurrent updates are checked
    against.
    """

    id: str
    email: str
    name: str
    password_hash: str
    verified: bool = False
    pending_otp: PendingOtp | None = None
    reset_token: ResetToken | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    password_changed_at: datetime | None = None

    @classmethod
    def create(cls, name: str, email: str, password_hash: str, now: datetime) -> User:
        """Create a new, unverified user with a fresh identifier."""
        return cls(
            id=uuid4().hex,
            email=cls.normalize_email(email),
            name=name.strip(),
            password_hash=password_hash,
            verified=False,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def normalize_email(email: str) -> str:
        """Emails are unique case-insensitively, so they are stored lower-cased."""
        return email.strip().lower()

    def clear_otp(self) -> None:
        self.pending_otp = None

    def mark_verified(self) -> None:
        self.verified = True

    def change_password(self, password_hash: str, now: datetime) -> None:
        """Replace the password hash and consume the reset token."""
        self.password_hash = password_hash
        self.reset_token = None
        self.password_changed_at = now

    def __repr__(self) -> str:
        return (
            f"User(id={self.id!r}, email={self.email!r}, verified={self.verified}, "
            f"version={self.version})"
        )
