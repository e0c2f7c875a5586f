"""Domain entities with business logic."""

from .user import OtpPurpose, PendingOtp, ResetToken, User

__all__ = ["User", "PendingOtp", "ResetToken", "OtpPurpose"]
