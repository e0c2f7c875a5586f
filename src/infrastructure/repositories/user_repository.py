"""
SQLAlchemy Credential Store Implementation

Concrete implementation of CredentialStore on a relational database.
Handles user persistence and mapping between User domain entities and
UserRecord rows. Updates are conditional on the row version.
"""

# Standard library imports
import logging
from datetime import UTC, datetime
from typing import Any

# Third-party imports
from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

# Local imports
from src.domain.entities.user import OtpPurpose, PendingOtp, ResetToken, User
from src.domain.exceptions import ConflictError, NotFoundError, StaleDataException
from src.domain.interfaces.credential_store import CredentialStore, UserMutation
from src.infrastructure.auth.models import Base, UserRecord

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """Some backends (SQLite) drop the timezone; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SqlAlchemyCredentialStore(CredentialStore):
    """
    SQLAlchemy implementation of CredentialStore.

    Email uniqueness is enforced by a unique index, so concurrent
    registrations of one address are decided by the database.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        """
        Initialize store with a session factory.

        Args:
            session_factory: Factory for database sessions bound to an engine
        """
        self.session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine, create_schema: bool = False) -> "SqlAlchemyCredentialStore":
        if create_schema:
            Base.metadata.create_all(engine)
        return cls(sessionmaker(bind=engine, expire_on_commit=False))

    def find_by_email(self, email: str) -> User | None:
        with self.session_factory() as session:
            record = session.scalars(
                select(UserRecord).where(UserRecord.email == User.normalize_email(email))
            ).first()
            return self._to_entity(record) if record is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        with self.session_factory() as session:
            record = session.get(UserRecord, user_id)
            return self._to_entity(record) if record is not None else None

    def create_user(self, user: User) -> User:
        """
        Insert a new user.

        Raises:
            ConflictError: If the email is already registered
        """
        now = datetime.now(UTC)
        values = self._to_values(user)
        values.update(
            id=user.id,
            email=User.normalize_email(user.email),
            version=1,
            created_at=user.created_at or now,
            updated_at=user.updated_at or now,
        )

        try:
            with self.session_factory.begin() as session:
                record = UserRecord(**values)
                session.add(record)
                session.flush()
                created = self._to_entity(record)
        except IntegrityError as e:
            logger.info(f"Rejected duplicate registration for user {user.id}")
            raise ConflictError(values["email"]) from e

        logger.debug(f"Inserted user {created.id}")
        return created

    def atomic_update(self, user_id: str, expected_version: int, mutation: UserMutation) -> User:
        """
        Apply a mutation to the user if it is still at the expected version.

        Raises:
            NotFoundError: If the user does not exist
            StaleDataException: If the stored version differs from expected_version
        """
        with self.session_factory.begin() as session:
            record = session.get(UserRecord, user_id)
            if record is None:
                raise NotFoundError("User not found", details={"user_id": user_id})
            if record.version != expected_version:
                raise StaleDataException("User", user_id, expected_version, record.version)

            user = self._to_entity(record)
            mutation(user)
            user.version = expected_version + 1
            user.updated_at = datetime.now(UTC)

            values = self._to_values(user)
            values.update(version=user.version, updated_at=user.updated_at)
            result = session.execute(
                update(UserRecord)
                .where(UserRecord.id == user_id, UserRecord.version == expected_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Lost the race between the read and the conditional write
                raise StaleDataException("User", user_id, expected_version)

        return user

    def _to_values(self, user: User) -> dict[str, Any]:
        """Mutable columns of a user. Identity and email are never rewritten."""
        pending = user.pending_otp
        reset = user.reset_token
        return {
            "name": user.name,
            "password_hash": user.password_hash,
            "verified": user.verified,
            "otp_hash": pending.code_hash if pending else None,
            "otp_purpose": pending.purpose.value if pending else None,
            "otp_created_at": pending.created_at if pending else None,
            "otp_expires_at": pending.expires_at if pending else None,
            "otp_last_sent_at": pending.last_sent_at if pending else None,
            "otp_attempts": pending.attempts if pending else 0,
            "reset_token_hash": reset.token_hash if reset else None,
            "reset_token_expires_at": reset.expires_at if reset else None,
            "password_changed_at": user.password_changed_at,
        }

    def _to_entity(self, record: UserRecord) -> User:
        """Map a database row to a User entity."""
        pending = None
        if record.otp_hash is not None:
            pending = PendingOtp(
                code_hash=record.otp_hash,
                purpose=OtpPurpose(record.otp_purpose),
                created_at=_as_utc(record.otp_created_at),
                expires_at=_as_utc(record.otp_expires_at),
                last_sent_at=_as_utc(record.otp_last_sent_at),
                attempts=record.otp_attempts or 0,
            )

        reset = None
        if record.reset_token_hash is not None:
            reset = ResetToken(
                token_hash=record.reset_token_hash,
                expires_at=_as_utc(record.reset_token_expires_at),
            )

        return User(
            id=record.id,
            email=record.email,
            name=record.name,
            password_hash=record.password_hash,
            verified=bool(record.verified),
            pending_otp=pending,
            reset_token=reset,
            version=record.version,
            created_at=_as_utc(record.created_at),
            updated_at=_as_utc(record.updated_at),
            password_changed_at=_as_utc(record.password_changed_at),
        )
