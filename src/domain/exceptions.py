"""
Domain-level exceptions for the account authentication core.

This module defines the exceptions raised by domain entities and the
authentication services. Every authentication failure is a distinct subclass of
AuthError so that callers (the HTTP layer, middleware) can map it to an outcome.
"""

from typing import Any
from uuid import UUID


class DomainException(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StaleDataException(DomainException):
    """
    Raised when attempting to update an entity that has been modified by another process.

    This is the domain's optimistic locking exception indicating version conflict.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: UUID | str,
        expected_version: int,
        actual_version: int | None = None,
    ) -> None:
        message = (
            f"{entity_type} {entity_id} has been modified by another process. "
            f"Expected version {expected_version}"
        )
        if actual_version is not None:
            message += f", but found version {actual_version}"

        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ConcurrencyException(DomainException):
    """
    Raised when a conditional update keeps losing to concurrent writers.

    Services re-read and retry on StaleDataException; this is raised once the
    retries are used up.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: UUID | str,
        retries: int,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = (
                f"Failed to update {entity_type} {entity_id} after {retries} retries "
                "due to concurrent modifications"
            )

        super().__init__(
            message,
            details={"entity_type": entity_type, "entity_id": str(entity_id), "retries": retries},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.retries = retries


# Authentication errors


class AuthError(DomainException):
    """Base class for all authentication state machine failures."""

    pass


class ConflictError(AuthError):
    """Raised when registering an email that already belongs to a user."""

    def __init__(self, email: str) -> None:
        super().__init__("Email already registered", details={"email": email})
        self.email = email


class NotFoundError(AuthError):
    """Raised for an unknown user, email, pending OTP or reset token."""

    pass


class UnauthorizedError(AuthError):
    """Raised on a bad password or an unverified account at login."""

    pass


class ExpiredError(AuthError):
    """Raised when an OTP, reset token or session token is past its expiry."""

    pass


class InvalidCodeError(AuthError):
    """Raised when a submitted OTP does not match the pending one."""

    def __init__(self, attempts: int, max_attempts: int) -> None:
        remaining = max(max_attempts - attempts, 0)
        super().__init__(
            "Invalid verification code",
            details={"attempts": attempts, "attempts_remaining": remaining},
        )
        self.attempts = attempts
        self.attempts_remaining = remaining


class InvalidTokenError(AuthError):
    """Raised when a submitted reset token does not match the stored hash."""

    pass


class PurposeMismatchError(AuthError):
    """Raised when the pending OTP was issued for a different flow."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Verification code was issued for {actual}, not {expected}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class ThrottledError(AuthError):
    """Raised when an OTP resend is requested inside the cooldown window."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            f"Please wait {retry_after} seconds before requesting a new code",
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


class LockedError(AuthError):
    """Raised when the pending OTP has used up its verification attempts."""

    def __init__(self, max_attempts: int) -> None:
        super().__init__(
            "Too many invalid attempts. Request a new code.",
            details={"max_attempts": max_attempts},
        )
        self.max_attempts = max_attempts


class InvalidSignatureError(AuthError):
    """Raised when a session token is malformed or its signature does not verify."""

    pass


class TokenRevokedError(AuthError):
    """Raised when a session token has been revoked."""

    pass
