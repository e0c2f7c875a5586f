"""
User registration service.

Handles account creation and email verification:
Unregistered -> PendingVerification (registration code issued) -> Verified.
"""

import asyncio
import logging

from src.domain.entities.user import OtpPurpose, User
from src.domain.interfaces.credential_store import CredentialStore

from ..jwt_service import JWTService
from ..types import SessionResult
from .concurrency import Clock, utc_now
from .delivery import OtpDispatcher
from .otp_service import OTPService
from .password_service import PasswordService

logger = logging.getLogger(__name__)


class RegistrationService:
    """User registration service."""

    def __init__(
        self,
        store: CredentialStore,
        otp_service: OTPService,
        password_service: PasswordService,
        jwt_service: JWTService,
        dispatcher: OtpDispatcher,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.otp_service = otp_service
        self.password_service = password_service
        self.jwt_service = jwt_service
        self.dispatcher = dispatcher
        self.clock = clock

    async def register(self, name: str, email: str, password: str) -> str:
        """
        Register a new, unverified user and send them a registration code.

        Args:
            name: Display name
            email: User email address
            password: User password, already checked against the password policy

        Returns:
            The new user's ID

        Raises:
            ConflictError: If the email is already registered
        """
        password_hash = await asyncio.to_thread(self.password_service.hash_password, password)
        user = User.create(name, email, password_hash, self.clock())

        # The first code is part of the insert, so a new user always has one
        code = self.otp_service.generate_code()
        self.otp_service.attach(user, OtpPurpose.REGISTRATION, code)
        created = self.store.create_user(user)

        logger.info(f"Registered user {created.id}, verification pending")

        await self.dispatcher.dispatch(created.email, OtpPurpose.REGISTRATION, code)
        return created.id

    async def verify_registration(self, user_id: str, code: str) -> SessionResult:
        """
        Verify the registration code, mark the user verified and log them in.

        Args:
            user_id: User ID
            code: Registration code from the email

        Returns:
            A new session

        Raises:
            NotFoundError, ExpiredError, PurposeMismatchError, LockedError,
            InvalidCodeError: From code verification, unchanged
        """
        user = self.otp_service.verify(
            user_id, OtpPurpose.REGISTRATION, code, on_success=User.mark_verified
        )

        logger.info(f"Email verified for user {user.id}")
        return self.jwt_service.create_session(user.id)
