"""
Authentication service.

Handles the two-step login of verified users:
Verified -> PendingLogin2FA (login code issued) -> Authenticated.
"""

import asyncio
import logging

from src.domain.entities.user import OtpPurpose, User
from src.domain.exceptions import NotFoundError, UnauthorizedError
from src.domain.interfaces.credential_store import CredentialStore

from ...config import AuthConfig
from ..jwt_service import JWTService
from ..types import SessionResult
from .concurrency import ConditionalUpdater, Decision
from .delivery import OtpDispatcher
from .otp_service import OTPService
from .password_service import PasswordService

logger = logging.getLogger(__name__)


class AuthenticationService:
    """User authentication service."""

    def __init__(
        self,
        store: CredentialStore,
        otp_service: OTPService,
        password_service: PasswordService,
        jwt_service: JWTService,
        dispatcher: OtpDispatcher,
        config: AuthConfig | None = None,
    ):
        self.store = store
        self.otp_service = otp_service
        self.password_service = password_service
        self.jwt_service = jwt_service
        self.dispatcher = dispatcher
        self.config = config or AuthConfig()
        self.updater = ConditionalUpdater(store, self.config.max_update_retries)

    async def login(self, email: str, password: str) -> str:
        """
        Check credentials and send a login code. No session is issued yet.

        Args:
            email: User email address
            password: User password

        Returns:
            The user ID to pair with the login code

        Raises:
            NotFoundError: If no user has this email
            UnauthorizedError: On a wrong password or an unverified account
        """
        user = self.store.find_by_email(User.normalize_email(email))
        if user is None:
            logger.info("Login failed: unknown email")
            raise NotFoundError("User not found")

        password_ok = await asyncio.to_thread(
            self.password_service.verify_password, password, user.password_hash
        )
        if not password_ok:
            logger.info(f"Login failed for user {user.id}: invalid password")
            raise UnauthorizedError("Invalid credentials")

        if not user.verified:
            logger.info(f"Login refused for user {user.id}: email not verified")
            raise UnauthorizedError("Email not verified", details={"user_id": user.id})

        if self.password_service.needs_rehash(user.password_hash):
            await self._upgrade_password_hash(user, password)

        code = self.otp_service.issue(user.id, OtpPurpose.LOGIN)
        await self.dispatcher.dispatch(user.email, OtpPurpose.LOGIN, code)
        return user.id

    async def complete_login(self, user_id: str, code: str) -> SessionResult:
        """
        Verify the login code and issue a session.

        Raises:
            NotFoundError, ExpiredError, PurposeMismatchError, LockedError,
            InvalidCodeError: From code verification, unchanged
        """
        user = self.otp_service.verify(user_id, OtpPurpose.LOGIN, code)

        logger.info(f"User {user.id} logged in")
        return self.jwt_service.create_session(user.id)

    async def _upgrade_password_hash(self, user: User, password: str) -> None:
        """Re-hash a password stored with fewer bcrypt rounds than configured."""
        stale_hash = user.password_hash
        new_hash = await asyncio.to_thread(self.password_service.hash_password, password)

        def decide(current: User) -> Decision:
            # A password changed in the meantime is left alone
            if current.password_hash != stale_hash:
                return Decision(None)

            def upgrade(target: User) -> None:
                target.password_hash = new_hash

            return Decision(upgrade)

        self.updater.apply(user.id, decide)
        logger.info(f"Upgraded password hash of user {user.id}")
