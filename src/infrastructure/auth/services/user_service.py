"""
Main user service orchestrator.

Provides a unified interface for all account operations by orchestrating the
specialized registration, login and password reset services over one shared
OTP engine.
"""

import logging
from collections.abc import Awaitable, Callable

from src.domain.entities.user import OtpPurpose
from src.domain.exceptions import NotFoundError, PurposeMismatchError
from src.domain.interfaces.credential_store import CredentialStore
from src.domain.interfaces.notification_sink import NotificationSink

from ...config import AuthConfig
from ..jwt_service import JWTService
from ..types import SessionResult, UserProfile
from .authentication import AuthenticationService
from .concurrency import Clock, ConditionalUpdater, utc_now
from .delivery import OtpDispatcher
from .otp_service import OTPService
from .password_reset import PasswordResetService
from .password_service import PasswordService
from .registration import RegistrationService

logger = logging.getLogger(__name__)


class UserService:
    """
    Main account management service.

    Orchestrates registration, two-step login and password reset by
    delegating to specialized services.
    """

    def __init__(
        self,
        store: CredentialStore,
        jwt_service: JWTService,
        notifier: NotificationSink,
        config: AuthConfig | None = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize user service with its dependencies.

        Args:
            store: Credential store holding user records
            jwt_service: Session token issuer
            notifier: Sink the one-time codes are delivered through
            config: Limits and lifetimes of the flows
            clock: Source of the current time
        """
        self.store = store
        self.jwt_service = jwt_service
        self.config = config or AuthConfig()
        self.clock = clock

        # Initialize specialized services
        self.password_service = PasswordService(self.config.bcrypt_rounds)
        self.otp_service = OTPService(store, self.config, clock)
        self.dispatcher = OtpDispatcher(notifier)
        self.updater = ConditionalUpdater(store, self.config.max_update_retries)

        self.registration_service = RegistrationService(
            store,
            self.otp_service,
            self.password_service,
            jwt_service,
            self.dispatcher,
            clock,
        )

        self.auth_service = AuthenticationService(
            store,
            self.otp_service,
            self.password_service,
            jwt_service,
            self.dispatcher,
            self.config,
        )

        self.password_reset_service = PasswordResetService(
            store,
            self.otp_service,
            self.password_service,
            jwt_service,
            self.dispatcher,
            self.config,
            clock,
        )

        self._otp_completions: dict[OtpPurpose, Callable[[str, str], Awaitable[SessionResult]]] = {
            OtpPurpose.REGISTRATION: self.registration_service.verify_registration,
            OtpPurpose.LOGIN: self.auth_service.complete_login,
        }

    # Registration operations
    async def register(self, name: str, email: str, password: str) -> str:
        """Register a new user. See RegistrationService.register."""
        return await self.registration_service.register(name, email, password)

    async def verify_registration(self, user_id: str, code: str) -> SessionResult:
        """Verify a registration code. See RegistrationService.verify_registration."""
        return await self.registration_service.verify_registration(user_id, code)

    # Authentication operations
    async def login(self, email: str, password: str) -> str:
        """Check credentials and send a login code. See AuthenticationService.login."""
        return await self.auth_service.login(email, password)

    async def complete_login(self, user_id: str, code: str) -> SessionResult:
        """Verify a login code. See AuthenticationService.complete_login."""
        return await self.auth_service.complete_login(user_id, code)

    # Password reset operations
    async def forgot_password(self, email: str) -> str:
        return await self.password_reset_service.forgot_password(email)

    async def verify_reset_otp(self, user_id: str, code: str) -> str:
        return await self.password_reset_service.verify_reset_otp(user_id, code)

    async def reset_password(self, user_id: str, reset_token: str, new_password: str) -> None:
        await self.password_reset_service.reset_password(user_id, reset_token, new_password)

    # One-time code operations
    async def resend_otp(self, user_id: str) -> OtpPurpose:
        """
        Send a fresh code for whatever flow the user is in the middle of.

        Returns:
            Purpose of the new code

        Raises:
            NotFoundError: If the user has no pending code
            ThrottledError: If the last code was sent inside the cooldown window
        """
        purpose, code = self.otp_service.resend_pending(user_id)
        user = self.updater.load(user_id)
        await self.dispatcher.dispatch(user.email, purpose, code)
        return purpose

    async def verify_otp(self, user_id: str, code: str) -> SessionResult:
        """
        Verify a registration or login code without the caller naming the flow.

        Raises:
            NotFoundError: If the user has no pending code
            PurposeMismatchError: If the pending code is a password reset code
        """
        user = self.updater.load(user_id)
        if user.pending_otp is None:
            raise NotFoundError("No pending verification code", details={"user_id": user_id})

        purpose = user.pending_otp.purpose
        complete = self._otp_completions.get(purpose)
        if complete is None:
            raise PurposeMismatchError("registration or login", purpose.value)
        return await complete(user_id, code)

    # Profile operations
    async def get_user_info(self, user_id: str) -> UserProfile:
        """
        Get the public profile of a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = self.updater.load(user_id)
        return UserProfile(
            id=user.id,
            name=user.name,
            email=user.email,
            verified=user.verified,
            created_at=user.created_at,
            password_changed_at=user.password_changed_at,
        )
