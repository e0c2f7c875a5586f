"""
Password codec.

bcrypt hashing and verification of account passwords, plus the acceptance
policy applied to new passwords by the request validation layer. The codec
itself hashes any string; policy is only enforced where a password is chosen.
"""

import base64
import hashlib
import logging
import re

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted bcrypt hashes at a configurable cost."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash with a fresh salt; equal passwords never share a hash."""
        digest = bcrypt.hashpw(self._to_bcrypt_input(password), bcrypt.gensalt(rounds=self.rounds))
        return digest.decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        """
        Check a password against a stored hash.

        bcrypt compares in constant time. A stored value that is not a bcrypt
        hash never verifies.
        """
        try:
            return bcrypt.checkpw(self._to_bcrypt_input(password), password_hash.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as e:
            logger.error(f"Stored password hash is unusable: {e}")
            return False

    @staticmethod
    def cost_of(password_hash: str) -> int | None:
        """Cost factor recorded in a `$2b$<cost>$...` hash, if it has one."""
        fields = password_hash.split("$")
        if len(fields) >= 3 and fields[2].isdigit():
            return int(fields[2])
        return None

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the hash was made with fewer rounds than configured."""
        cost = self.cost_of(password_hash)
        return cost is not None and cost < self.rounds

    @staticmethod
    def _to_bcrypt_input(password: str) -> bytes:
        # Long passwords are pre-hashed so bytes past the limit still count
        raw = password.encode("utf-8")
        if len(raw) <= _BCRYPT_MAX_BYTES:
            return raw
        return base64.b64encode(hashlib.sha256(raw).digest())


class PasswordValidator:
    """Acceptance policy for newly chosen passwords."""

    MIN_LENGTH = 12
    MAX_LENGTH = 128

    CHARACTER_RULES: tuple[tuple[str, str], ...] = (
        (r"[A-Z]", "Password must contain at least one uppercase letter"),
        (r"[a-z]", "Password must contain at least one lowercase letter"),
        (r"\d", "Password must contain at least one number"),
        (r"[^A-Za-z0-9\s]", "Password must contain at least one special character"),
    )

    @classmethod
    def validate(cls, password: str) -> tuple[bool, list[str]]:
        """
        Check a password against the policy.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors = []

        if len(password) < cls.MIN_LENGTH:
            errors.append(f"Password must be at least {cls.MIN_LENGTH} characters long")
        elif len(password) > cls.MAX_LENGTH:
            errors.append(f"Password must not exceed {cls.MAX_LENGTH} characters")

        errors.extend(
            message for pattern, message in cls.CHARACTER_RULES if not re.search(pattern, password)
        )
        return not errors, errors


class PasswordService:
    """Password codec used by the account flows."""

    def __init__(self, rounds: int = 12) -> None:
        self.hasher = PasswordHasher(rounds)

    def hash_password(self, password: str) -> str:
        return self.hasher.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return self.hasher.verify(password, password_hash)

    def validate_password(self, password: str) -> tuple[bool, list[str]]:
        return PasswordValidator.validate(password)

    def needs_rehash(self, password_hash: str) -> bool:
        return self.hasher.needs_rehash(password_hash)
