"""
Authentication API endpoints.

This module provides the FastAPI router for registration, two-step login,
one-time code handling and password reset, plus the handlers that turn
authentication errors into HTTP responses.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr, field_validator

from src.domain.exceptions import (
    AuthError,
    ConcurrencyException,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    InvalidSignatureError,
    InvalidTokenError,
    LockedError,
    NotFoundError,
    PurposeMismatchError,
    ThrottledError,
    TokenRevokedError,
    UnauthorizedError,
)

from ..monitoring.logging import user_context
from .middleware import SessionBearer
from .services.password_service import PasswordValidator
from .services.user_service import UserService

if TYPE_CHECKING:
    from .app import AuthContainer

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/auth", tags=["Authentication"])

# Digits only; the exact length comes from the configured code engine
OTP_PATTERN = r"^\d+$"
OTP_MAX_LENGTH = 16


# Request/Response models
class StrongPasswordMixin(BaseModel):
    """Checks the `password` / `new_password` field against the password policy."""

    @field_validator("password", "new_password", check_fields=False)
    @classmethod
    def check_password_policy(cls, value: SecretStr) -> SecretStr:
        is_valid, errors = PasswordValidator.validate(value.get_secret_value())
        if not is_valid:
            raise ValueError("; ".join(errors))
        return value


class RegisterRequest(StrongPasswordMixin):
    """User registration request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: SecretStr


class RegisterResponse(BaseModel):
    """User registration response."""

    user_id: str
    message: str


class VerifyOtpRequest(BaseModel):
    """One-time code submission for registration or login."""

    user_id: str
    otp: str = Field(..., max_length=OTP_MAX_LENGTH, pattern=OTP_PATTERN)


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr
    password: SecretStr


class OtpSentResponse(BaseModel):
    """Response of steps that email a one-time code."""

    user_id: str
    message: str


class SessionResponse(BaseModel):
    """Session issued at the end of a flow."""

    user_id: str
    session_token: str
    token_type: str = "Bearer"
    expires_in: int


class ResendOtpRequest(BaseModel):
    """Resend request."""

    user_id: str


class ForgotPasswordRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class VerifyResetOtpRequest(BaseModel):
    """Password reset code submission."""

    user_id: str
    otp: str = Field(..., max_length=OTP_MAX_LENGTH, pattern=OTP_PATTERN)


class ResetTokenResponse(BaseModel):
    """Reset token exchanged for a verified reset code."""

    user_id: str
    reset_token: str


class ResetPasswordRequest(StrongPasswordMixin):
    """Password reset confirmation."""

    user_id: str
    reset_token: str
    new_password: SecretStr


class MessageResponse(BaseModel):
    message: str


class UserProfileResponse(BaseModel):
    """User profile response."""

    id: str
    name: str
    email: str
    verified: bool
    created_at: str | None
    password_changed_at: str | None = None


# Dependency injection
def get_container(request: Request) -> "AuthContainer":
    """Get the services registered on the application."""
    return request.app.state.auth  # type: ignore[no-any-return]


def get_user_service(request: Request) -> UserService:
    """Get user service instance."""
    return get_container(request).user_service


def check_code_length(user_service: UserService, code: str) -> None:
    """Reject a code of the wrong length with 422 before it costs an attempt."""
    otp_service = user_service.otp_service
    if not otp_service.is_well_formed(code):
        raise RequestValidationError(
            [
                {
                    "type": "string_pattern_mismatch",
                    "loc": ("body", "otp"),
                    "msg": f"Code must be exactly {otp_service.config.otp_length} digits",
                    "input": code,
                }
            ]
        )


# Public endpoints (no authentication required)
@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    user_service: UserService = Depends(get_user_service),
) -> RegisterResponse:
    """
    Register a new user account.

    Sends a verification code to the email address.
    """
    user_id = await user_service.register(
        name=request.name,
        email=request.email,
        password=request.password.get_secret_value(),
    )
    return RegisterResponse(
        user_id=user_id,
        message="Registration successful. A verification code has been sent to your email.",
    )


@router.post("/verify-otp", response_model=SessionResponse)
async def verify_otp(
    request: VerifyOtpRequest,
    user_service: UserService = Depends(get_user_service),
) -> SessionResponse:
    """
    Verify a registration or login code.

    A registration code verifies the email and logs the user in; a login code
    completes the login.
    """
    check_code_length(user_service, request.otp)
    result = await user_service.verify_otp(request.user_id, request.otp)
    return SessionResponse(
        user_id=result.user_id,
        session_token=result.session_token,
        token_type=result.token_type,
        expires_in=result.expires_in,
    )


@router.post("/login", response_model=OtpSentResponse)
async def login(
    request: LoginRequest,
    user_service: UserService = Depends(get_user_service),
) -> OtpSentResponse:
    """
    Check email and password, then send a login code.

    No session is issued until the code is verified.
    """
    user_id = await user_service.login(request.email, request.password.get_secret_value())
    return OtpSentResponse(user_id=user_id, message="A login code has been sent to your email.")


@router.post("/complete-login", response_model=SessionResponse)
async def complete_login(
    request: VerifyOtpRequest,
    user_service: UserService = Depends(get_user_service),
) -> SessionResponse:
    """Verify a login code and issue a session."""
    check_code_length(user_service, request.otp)
    result = await user_service.complete_login(request.user_id, request.otp)
    return SessionResponse(
        user_id=result.user_id,
        session_token=result.session_token,
        token_type=result.token_type,
        expires_in=result.expires_in,
    )


@router.post("/resend-otp", response_model=OtpSentResponse)
async def resend_otp(
    request: ResendOtpRequest,
    user_service: UserService = Depends(get_user_service),
) -> OtpSentResponse:
    """Resend the code of the ongoing registration, login or password reset."""
    purpose = await user_service.resend_otp(request.user_id)
    return OtpSentResponse(
        user_id=request.user_id,
        message=f"A new {purpose.value.replace('_', ' ')} code has been sent to your email.",
    )


@router.post("/forgot-password", response_model=OtpSentResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    user_service: UserService = Depends(get_user_service),
) -> OtpSentResponse:
    """
    Request a password reset code.

    The returned user ID is submitted with the code in the next step.
    """
    user_id = await user_service.forgot_password(request.email)
    return OtpSentResponse(
        user_id=user_id, message="A password reset code has been sent to your email."
    )


@router.post("/verify-reset-otp", response_model=ResetTokenResponse)
async def verify_reset_otp(
    request: VerifyResetOtpRequest,
    user_service: UserService = Depends(get_user_service),
) -> ResetTokenResponse:
    """Exchange a password reset code for a reset token."""
    check_code_length(user_service, request.otp)
    reset_token = await user_service.verify_reset_otp(request.user_id, request.otp)
    return ResetTokenResponse(user_id=request.user_id, reset_token=reset_token)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """
    Set a new password using a reset token.

    Signs the user out everywhere.
    """
    await user_service.reset_password(
        request.user_id, request.reset_token, request.new_password.get_secret_value()
    )
    return MessageResponse(message="Password has been reset successfully")


# Protected endpoints (authentication required)
@router.get("/me", response_model=UserProfileResponse)
async def get_profile(
    user_id: str = Depends(SessionBearer()),
    user_service: UserService = Depends(get_user_service),
) -> UserProfileResponse:
    """Get the profile of the authenticated user."""
    with user_context(user_id):
        profile = await user_service.get_user_info(user_id)
    return UserProfileResponse(
        id=profile.id,
        name=profile.name,
        email=profile.email,
        verified=profile.verified,
        created_at=profile.created_at.isoformat() if profile.created_at else None,
        password_changed_at=(
            profile.password_changed_at.isoformat() if profile.password_changed_at else None
        ),
    )


# Error handling
ERROR_STATUS: list[tuple[type[AuthError], int]] = [
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ExpiredError, status.HTTP_410_GONE),
    (InvalidCodeError, status.HTTP_400_BAD_REQUEST),
    (InvalidTokenError, status.HTTP_400_BAD_REQUEST),
    (PurposeMismatchError, status.HTTP_400_BAD_REQUEST),
    (ThrottledError, status.HTTP_429_TOO_MANY_REQUESTS),
    (LockedError, status.HTTP_423_LOCKED),
    (InvalidSignatureError, status.HTTP_401_UNAUTHORIZED),
    (TokenRevokedError, status.HTTP_401_UNAUTHORIZED),
]


def status_for(error: AuthError) -> int:
    """HTTP status for an authentication error."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError as `{"error": ..., "detail": ..., **details}`."""
    status_code = status_for(exc)

    headers: dict[str, str] = {}
    if isinstance(exc, ThrottledError):
        headers["Retry-After"] = str(exc.retry_after)
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    # The conflicting email is not echoed back
    details = {k: v for k, v in exc.details.items() if k != "email"}
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": exc.message, **details},
        headers=headers,
    )


async def concurrency_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Request to {request.url.path} gave up on concurrent updates: {exc!s}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "ConcurrencyException", "detail": "Please retry the request"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the authentication error handlers on an application."""
    app.add_exception_handler(AuthError, auth_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ConcurrencyException, concurrency_error_handler)
