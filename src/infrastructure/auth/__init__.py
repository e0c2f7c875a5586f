"""
OTP-gated account authentication.

This package provides registration, two-step login and password reset
gated by emailed one-time codes, RS256 session tokens, and the FastAPI
router exposing them. The application factory lives in `.app`.
"""

from .endpoints import register_exception_handlers, router
from .jwt_service import JWTService
from .middleware import RequestIDMiddleware, SessionBearer
from .models import Base, UserRecord
from .services import (
    AuthenticationService,
    OTPService,
    PasswordHasher,
    PasswordResetService,
    PasswordService,
    PasswordValidator,
    RegistrationService,
    UserService,
)
from .types import SessionResult, UserProfile

__all__ = [
    # Services
    "UserService",
    "OTPService",
    "PasswordService",
    "PasswordHasher",
    "PasswordValidator",
    "RegistrationService",
    "AuthenticationService",
    "PasswordResetService",
    # Session tokens
    "JWTService",
    "SessionResult",
    "UserProfile",
    # HTTP
    "router",
    "register_exception_handlers",
    "SessionBearer",
    "RequestIDMiddleware",
    # Models
    "UserRecord",
    "Base",
]

__version__ = "1.0.0"
