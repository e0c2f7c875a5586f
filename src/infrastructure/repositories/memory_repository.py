"""
In-Memory Credential Store

Thread-safe CredentialStore kept in process memory. Used by tests and by
single-process development setups.
"""

# Standard library imports
import copy
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

# Local imports
from src.domain.entities.user import User
from src.domain.exceptions import ConflictError, NotFoundError, StaleDataException
from src.domain.interfaces.credential_store import CredentialStore, UserMutation

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(CredentialStore):
    """
    Dictionary-backed credential store.

    Users are copied on the way in and out, so callers never hold a reference
    to the stored object and can only change it through atomic_update.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._ids_by_email: dict[str, str] = {}
        self._clock = clock or (lambda: datetime.now(UTC))

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._ids_by_email.get(User.normalize_email(email))
            if user_id is None:
                return None
            return copy.deepcopy(self._users[user_id])

    def find_by_id(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user is not None else None

    def create_user(self, user: User) -> User:
        email = User.normalize_email(user.email)
        with self._lock:
            if email in self._ids_by_email:
                raise ConflictError(email)

            stored = copy.deepcopy(user)
            stored.email = email
            stored.version = 1
            now = self._clock()
            stored.created_at = stored.created_at or now
            stored.updated_at = stored.updated_at or now

            self._users[stored.id] = stored
            self._ids_by_email[email] = stored.id
            logger.debug(f"Inserted user {stored.id}")
            return copy.deepcopy(stored)

    def atomic_update(self, user_id: str, expected_version: int, mutation: UserMutation) -> User:
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise NotFoundError("User not found", details={"user_id": user_id})
            if current.version != expected_version:
                raise StaleDataException("User", user_id, expected_version, current.version)

            # Mutate a copy so a failing mutation leaves the stored user untouched
            updated = copy.deepcopy(current)
            mutation(updated)
            updated.id = current.id
            updated.email = current.email
            updated.version = current.version + 1
            updated.updated_at = self._clock()

            self._users[user_id] = updated
            return copy.deepcopy(updated)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
