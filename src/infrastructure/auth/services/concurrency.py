"""
Optimistic concurrency for user record updates.

Every state transition of the authentication flows is a read, a decision on
the snapshot, and a conditional write keyed on the snapshot's version. When a
concurrent request wins the race the write is rejected with
StaleDataException, and the whole decision is re-made on a fresh read.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import NamedTuple

from src.domain.entities.user import User
from src.domain.exceptions import (
    AuthError,
    ConcurrencyException,
    NotFoundError,
    StaleDataException,
)
from src.domain.interfaces.credential_store import CredentialStore, UserMutation

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(UTC)


class Decision(NamedTuple):
    """
    Outcome of evaluating a transition against a user snapshot.

    `mutation` is written conditionally (None means nothing to write); `error`
    is raised after the write succeeded, for transitions that must persist
    something and still fail, like a wrong code bumping the attempt counter.
    """

    mutation: UserMutation | None
    error: AuthError | None = None


class ConditionalUpdater:
    """Runs read / decide / compare-and-swap loops against a credential store."""

    def __init__(self, store: CredentialStore, max_retries: int = 3) -> None:
        self.store = store
        self.max_retries = max_retries

    def load(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return user

    def apply(self, user_id: str, decide: Callable[[User], Decision]) -> User:
        """
        Evaluate `decide` on the current user and write its mutation conditionally.

        `decide` may raise an AuthError to reject the transition without writing.

        Returns:
            The user as stored after the write

        Raises:
            NotFoundError: If the user does not exist
            ConcurrencyException: If every attempt lost a version race
        """
        for attempt in range(1, self.max_retries + 1):
            user = self.load(user_id)
            decision = decide(user)

            if decision.mutation is None:
                updated = user
            else:
                try:
                    updated = self.store.atomic_update(user_id, user.version, decision.mutation)
                except StaleDataException:
                    logger.warning(
                        f"Version conflict updating user {user_id} "
                        f"(attempt {attempt}/{self.max_retries}), re-reading"
                    )
                    continue

            if decision.error is not None:
                raise decision.error
            return updated

        logger.error(f"Giving up on user {user_id} after {self.max_retries} version conflicts")
        raise ConcurrencyException("User", user_id, self.max_retries)
