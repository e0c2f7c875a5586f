"""
Authentication service components.

Each account flow lives in a focused service; UserService composes them over
one shared OTP engine.
"""

from .authentication import AuthenticationService
from .concurrency import ConditionalUpdater, Decision
from .delivery import OtpDispatcher
from .otp_service import OTPService
from .password_reset import PasswordResetService
from .password_service import PasswordHasher, PasswordService, PasswordValidator
from .registration import RegistrationService
from .user_service import UserService

__all__ = [
    "OTPService",
    "PasswordService",
    "PasswordHasher",
    "PasswordValidator",
    "RegistrationService",
    "AuthenticationService",
    "PasswordResetService",
    "OtpDispatcher",
    "ConditionalUpdater",
    "Decision",
    "UserService",
]
