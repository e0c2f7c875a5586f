"""
Password reset service.

Verified -> PasswordResetRequested (reset code issued) -> ResetTokenIssued
-> PasswordReset. The reset code proves control of the mailbox; the reset
token it is exchanged for authorises the actual password change.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets

from src.domain.entities.user import OtpPurpose, ResetToken, User
from src.domain.exceptions import (
    ExpiredError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
)
from src.domain.interfaces.credential_store import CredentialStore

from ...config import AuthConfig
from ..jwt_service import JWTService
from .concurrency import Clock, ConditionalUpdater, Decision, utc_now
from .delivery import OtpDispatcher
from .otp_service import OTPService
from .password_service import PasswordService

logger = logging.getLogger(__name__)


def hash_reset_token(token: str) -> str:
    """Reset tokens carry 256 random bits, so a plain digest is enough."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordResetService:
    """Password reset service."""

    def __init__(
        self,
        store: CredentialStore,
        otp_service: OTPService,
        password_service: PasswordService,
        jwt_service: JWTService,
        dispatcher: OtpDispatcher,
        config: AuthConfig | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.otp_service = otp_service
        self.password_service = password_service
        self.jwt_service = jwt_service
        self.dispatcher = dispatcher
        self.config = config or AuthConfig()
        self.clock = clock
        self.updater = ConditionalUpdater(store, self.config.max_update_retries)

    async def forgot_password(self, email: str) -> str:
        """
        Send a password reset code.

        Returns:
            The user ID to pair with the reset code

        Raises:
            NotFoundError: If no user has this email
            UnauthorizedError: If the email was never verified
        """
        user = self.store.find_by_email(User.normalize_email(email))
        if user is None:
            logger.info("Password reset requested for unknown email")
            raise NotFoundError("User not found")

        # An unverified user's pending code is their registration code; keep it
        if not user.verified:
            logger.info(f"Password reset refused for user {user.id}: email not verified")
            raise UnauthorizedError("Email not verified", details={"user_id": user.id})

        code = self.otp_service.issue(user.id, OtpPurpose.PASSWORD_RESET)
        await self.dispatcher.dispatch(user.email, OtpPurpose.PASSWORD_RESET, code)

        logger.info(f"Password reset requested for user {user.id}")
        return user.id

    async def verify_reset_otp(self, user_id: str, code: str) -> str:
        """
        Exchange a verified reset code for a reset token.

        Returns:
            The plaintext reset token. Only its hash is stored.

        Raises:
            NotFoundError, ExpiredError, PurposeMismatchError, LockedError,
            InvalidCodeError: From code verification, unchanged
        """
        token = secrets.token_urlsafe(32)
        reset_token = ResetToken(
            token_hash=hash_reset_token(token),
            expires_at=self.clock() + self.config.reset_token_expiry,
        )

        def store_token(user: User) -> None:
            user.reset_token = reset_token

        self.otp_service.verify(user_id, OtpPurpose.PASSWORD_RESET, code, on_success=store_token)

        logger.info(f"Reset token issued for user {user_id}")
        return token

    async def reset_password(self, user_id: str, reset_token: str, new_password: str) -> None:
        """
        Set a new password using a reset token.

        All outstanding session tokens of the user are revoked afterwards.

        Raises:
            NotFoundError: If the user has no reset token
            ExpiredError: If the reset token expired; it is discarded
            InvalidTokenError: If the reset token does not match
        """
        # Fail fast before paying for bcrypt
        self._check_token(self.updater.load(user_id), reset_token)

        password_hash = await asyncio.to_thread(self.password_service.hash_password, new_password)

        def decide(user: User) -> Decision:
            expired = self._check_token(user, reset_token)
            if expired is not None:
                return expired
            now = self.clock()
            return Decision(lambda target: target.change_password(password_hash, now))

        self.updater.apply(user_id, decide)

        revoked = self.jwt_service.revoke_all_user_tokens(user_id)
        logger.info(f"Password reset for user {user_id}, {revoked} sessions revoked")

    def _check_token(self, user: User, reset_token: str) -> Decision | None:
        """
        Validate a submitted reset token against the stored one.

        Returns:
            A decision discarding the stored token if it expired, otherwise None

        Raises:
            NotFoundError, InvalidTokenError
        """
        stored = user.reset_token
        if stored is None:
            raise NotFoundError("No password reset in progress", details={"user_id": user.id})

        if stored.is_expired(self.clock()):

            def discard(target: User) -> None:
                target.reset_token = None

            return Decision(discard, ExpiredError("Reset token has expired"))

        if not hmac.compare_digest(stored.token_hash, hash_reset_token(reset_token)):
            logger.warning(f"Invalid reset token submitted for user {user.id}")
            raise InvalidTokenError("Invalid reset token")

        return None
