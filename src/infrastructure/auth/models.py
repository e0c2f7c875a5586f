"""
Database models for authentication.

This module defines the SQLAlchemy model backing the SQL credential store. The
pending one-time code and the reset token are flattened into nullable columns
of the user row, so every state transition is a single-row update.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UserRecord(Base):  # type: ignore[valid-type, misc]
    """User account row with its pending code and reset token."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)

    # Pending one-time code
    otp_hash = Column(String(64))
    otp_purpose = Column(String(32))
    otp_created_at = Column(DateTime(timezone=True))
    otp_expires_at = Column(DateTime(timezone=True))
    otp_last_sent_at = Column(DateTime(timezone=True))
    otp_attempts = Column(Integer, nullable=False, default=0)

    # Password reset
    reset_token_hash = Column(String(64))
    reset_token_expires_at = Column(DateTime(timezone=True))

    # Optimistic locking
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))
    password_changed_at = Column(DateTime(timezone=True))

    __table_args__ = (Index("idx_users_email", "email", unique=True),)

    def __repr__(self) -> str:
        return f"<UserRecord(id={self.id}, email={self.email}, version={self.version})>"
