"""
Credential store interface.

The authentication core never talks to a database directly. Whatever persists
users has to implement this contract, and in particular has to provide a
conditional (compare-and-swap) update keyed on the record version so that
concurrent requests against the same user cannot lose writes.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from ..entities.user import User

UserMutation = Callable[[User], None]


class CredentialStore(ABC):
    """Persistence contract for User records."""

    @abstractmethod
    def find_by_email(self, email: str) -> User | None:
        """
        Find a user by email, case-insensitively.

        Returns:
            A detached copy of the user, or None
        """

    @abstractmethod
    def find_by_id(self, user_id: str) -> User | None:
        """
        Find a user by identifier.

        Returns:
            A detached copy of the user, or None
        """

    @abstractmethod
    def create_user(self, user: User) -> User:
        """
        Insert a new user.

        The uniqueness check on email and the insert happen as one atomic
        operation.

        Raises:
            ConflictError: If a user with the same email already exists
        """

    @abstractmethod
    def atomic_update(self, user_id: str, expected_version: int, mutation: UserMutation) -> User:
        """
        Apply `mutation` to the stored user if its version is still `expected_version`.

        The mutation receives a copy of the stored user and changes it in place.
        On success the version is incremented and the updated copy returned.

        Raises:
            NotFoundError: If no user has this id
            StaleDataException: If the stored version differs from `expected_version`
        """
