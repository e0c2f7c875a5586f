"""
One-time passcode service.

Generates, hashes, validates and expires the emailed one-time codes that gate
registration, login and password reset. A user has at most one pending code;
issuing a new one for any purpose replaces the old one in the same write.
"""

import hashlib
import hmac
import logging
import math
import secrets

from src.domain.entities.user import OtpPurpose, PendingOtp, User
from src.domain.exceptions import (
    ExpiredError,
    InvalidCodeError,
    LockedError,
    NotFoundError,
    PurposeMismatchError,
    ThrottledError,
)
from src.domain.interfaces.credential_store import CredentialStore, UserMutation

from ...config import AuthConfig
from .concurrency import Clock, ConditionalUpdater, Decision, utc_now

logger = logging.getLogger(__name__)


class OTPService:
    """One-time passcode engine."""

    def __init__(
        self,
        store: CredentialStore,
        config: AuthConfig | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config or AuthConfig()
        self.clock = clock
        self.updater = ConditionalUpdater(store, self.config.max_update_retries)

    def issue(self, user_id: str, purpose: OtpPurpose) -> str:
        """
        Issue a new code for a user, replacing any pending one.

        Args:
            user_id: User ID
            purpose: Flow the code is scoped to

        Returns:
            The plaintext code, for delivery only. It is never persisted.
        """
        code = self.generate_code()
        self.updater.apply(user_id, lambda user: Decision(self._replace_otp(user, purpose, code)))
        logger.info(f"Issued {purpose.value} code for user {user_id}")
        return code

    def resend(self, user_id: str, purpose: OtpPurpose) -> str:
        """
        Issue a fresh code unless the previous one was sent inside the cooldown window.

        Raises:
            ThrottledError: If the last code was sent less than the cooldown ago
        """
        _, code = self._resend(user_id, purpose)
        return code

    def resend_pending(self, user_id: str) -> tuple[OtpPurpose, str]:
        """
        Renew the pending code for whatever flow it belongs to.

        The purpose is read in the same conditional update that replaces the
        code, so a code issued concurrently for another flow is the one renewed.

        Returns:
            Purpose of the renewed code and the plaintext code

        Raises:
            NotFoundError: If the user has no pending code
            ThrottledError: If the last code was sent less than the cooldown ago
        """
        return self._resend(user_id, None)

    def _resend(self, user_id: str, purpose: OtpPurpose | None) -> tuple[OtpPurpose, str]:
        code = self.generate_code()
        resent: list[OtpPurpose] = []

        def decide(user: User) -> Decision:
            pending = user.pending_otp
            if pending is None:
                if purpose is None:
                    raise NotFoundError(
                        "No pending verification code", details={"user_id": user.id}
                    )
                target = purpose
            else:
                elapsed = self.clock() - pending.last_sent_at
                if elapsed < self.config.resend_cooldown:
                    retry_after = math.ceil(
                        (self.config.resend_cooldown - elapsed).total_seconds()
                    )
                    raise ThrottledError(retry_after)
                target = purpose or pending.purpose
            # Only the decision of the attempt that was written counts
            resent[:] = [target]
            return Decision(self._replace_otp(user, target, code))

        self.updater.apply(user_id, decide)
        logger.info(f"Resent {resent[0].value} code for user {user_id}")
        return resent[0], code

    def verify(
        self,
        user_id: str,
        purpose: OtpPurpose,
        candidate_code: str,
        on_success: UserMutation | None = None,
    ) -> User:
        """
        Verify a submitted code and consume it.

        Args:
            user_id: User ID
            purpose: Flow the caller expects the code to belong to
            candidate_code: Code submitted by the user
            on_success: Extra change written in the same update that consumes the code

        Returns:
            The user after the code was consumed

        Raises:
            NotFoundError: No user or no pending code
            ExpiredError: The pending code is past its expiry
            PurposeMismatchError: The pending code belongs to another flow
            LockedError: The pending code has no attempts left
            InvalidCodeError: The code does not match; the attempt is recorded
        """
        max_attempts = self.config.max_otp_attempts

        def decide(user: User) -> Decision:
            pending = user.pending_otp
            if pending is None:
                raise NotFoundError("No pending verification code", details={"user_id": user.id})
            if pending.is_expired(self.clock()):
                raise ExpiredError("Verification code has expired", details={"user_id": user.id})
            if pending.purpose is not purpose:
                raise PurposeMismatchError(purpose.value, pending.purpose.value)
            if pending.is_locked(max_attempts):
                raise LockedError(max_attempts)

            if self._matches(user.id, pending, candidate_code):

                def consume(target: User) -> None:
                    target.clear_otp()
                    if on_success is not None:
                        on_success(target)

                return Decision(consume)

            attempts = pending.attempts + 1

            def record_failure(target: User) -> None:
                if target.pending_otp is not None:
                    target.pending_otp.attempts = attempts

            return Decision(record_failure, InvalidCodeError(attempts, max_attempts))

        try:
            user = self.updater.apply(user_id, decide)
        except InvalidCodeError as e:
            if e.attempts_remaining == 0:
                logger.warning(
                    f"{purpose.value} code for user {user_id} locked after {e.attempts} attempts"
                )
            else:
                logger.info(
                    f"Invalid {purpose.value} code for user {user_id} (attempt {e.attempts})"
                )
            raise

        logger.info(f"Verified {purpose.value} code for user {user_id}")
        return user

    def generate_code(self) -> str:
        """Uniformly random numeric code, leading zeros kept."""
        return f"{secrets.randbelow(10**self.config.otp_length):0{self.config.otp_length}d}"

    def hash_code(self, user_id: str, purpose: OtpPurpose, code: str) -> str:
        """Keyed one-way hash of a code, bound to its user and purpose."""
        message = f"{user_id}:{purpose.value}:{code}".encode()
        return hmac.new(self.config.otp_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def is_well_formed(self, code: str) -> bool:
        """Exactly `otp_length` ASCII digits."""
        return len(code) == self.config.otp_length and code.isascii() and code.isdigit()

    def _matches(self, user_id: str, pending: PendingOtp, candidate_code: str) -> bool:
        # A malformed code still counts as a failed attempt
        if not self.is_well_formed(candidate_code):
            return False
        expected = self.hash_code(user_id, pending.purpose, candidate_code)
        return hmac.compare_digest(expected, pending.code_hash)

    def attach(self, user: User, purpose: OtpPurpose, code: str) -> None:
        """Set the pending code on a user that has not been stored yet."""
        user.pending_otp = self._build_pending(user.id, purpose, code)

    def _build_pending(self, user_id: str, purpose: OtpPurpose, code: str) -> PendingOtp:
        now = self.clock()
        return PendingOtp(
            code_hash=self.hash_code(user_id, purpose, code),
            purpose=purpose,
            created_at=now,
            expires_at=now + self.config.otp_expiry,
            last_sent_at=now,
            attempts=0,
        )

    def _replace_otp(self, user: User, purpose: OtpPurpose, code: str) -> UserMutation:
        pending = self._build_pending(user.id, purpose, code)

        def mutation(target: User) -> None:
            target.pending_otp = pending

        return mutation
