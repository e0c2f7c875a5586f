"""
JWT session token service.

This module mints and verifies the signed, time-bounded session tokens issued
once a user completes an authentication flow. The signing key pair is
process-wide configuration; when a Redis client is available, issued tokens
are tracked per user so they can be revoked after a password reset.
"""

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import redis
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.domain.exceptions import ExpiredError, InvalidSignatureError, TokenRevokedError

from ..config import SessionConfig
from .types import SessionResult

logger = logging.getLogger(__name__)

TOKEN_TYPE = "session"


class JWTService:
    """
    Session token issuer.

    Supports:
    - RS256 signed session tokens (24 hours default)
    - Loading persistent PEM keys, or ephemeral keys outside production
    - Per-user revocation backed by Redis
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        redis_client: redis.Redis | None = None,
    ):
        """
        Initialize JWT service.

        Args:
            config: Issuer, lifetime and key locations
            redis_client: Redis client for revocation tracking. Falls back to
                `config.redis_url`; without either, tokens are stateless.
        """
        self.config = config or SessionConfig()
        self.issuer = self.config.issuer
        self.algorithm = "RS256"
        self.session_ttl = timedelta(minutes=self.config.session_ttl_minutes)

        private_key_path = self.config.private_key_path
        public_key_path = self.config.public_key_path

        # Load keys - require persistent keys for production security
        if private_key_path and os.path.exists(private_key_path):
            self.private_key = self._load_private_key(private_key_path)
            if public_key_path and os.path.exists(public_key_path):
                self.public_key = self._load_public_key(public_key_path)
            else:
                self.public_key = self.private_key.public_key()
        elif self.config.environment == "production":
            raise RuntimeError(
                "JWT private key is required for production. "
                "Please generate RSA keys and set AUTH_JWT_PRIVATE_KEY_PATH. "
                "Use: openssl genrsa -out private_key.pem 2048"
            )
        else:
            logger.warning(
                "No private key found - generating ephemeral keys for DEVELOPMENT ONLY. "
                "These keys will be lost on restart and all sessions will be invalidated!"
            )
            self.private_key, self.public_key = self._generate_key_pair()

        if redis_client is None and self.config.redis_url:
            redis_client = redis.from_url(self.config.redis_url, decode_responses=True)
        self.redis = redis_client

        # Key rotation support
        now = datetime.now(UTC)
        self.key_id = f"{now.year}-{now.month:02d}-key-1"

    def _load_private_key(self, path: str) -> Any:
        """Load RSA private key from file."""
        with open(path, "rb") as key_file:
            return serialization.load_pem_private_key(key_file.read(), password=None)

    def _load_public_key(self, path: str) -> Any:
        """Load RSA public key from file."""
        with open(path, "rb") as key_file:
            return serialization.load_pem_public_key(key_file.read())

    def _generate_key_pair(self) -> tuple[Any, Any]:
        """Generate new RSA key pair for development."""
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return private_key, private_key.public_key()

    def mint(self, user_id: str) -> str:
        """
        Create a signed session token for a user.

        Args:
            user_id: User identifier

        Returns:
            Signed JWT session token
        """
        now = datetime.now(UTC)
        jti = f"sess_{secrets.token_urlsafe(16)}"

        payload = {
            "iss": self.issuer,
            "sub": user_id,
            "aud": [self.issuer],
            "exp": now + self.session_ttl,
            "nbf": now,
            "iat": now,
            "jti": jti,
            "type": TOKEN_TYPE,
        }

        token = jwt.encode(
            payload,
            self.private_key,
            algorithm=self.algorithm,
            headers={"kid": self.key_id},
        )

        if self.redis is not None:
            ttl = int(self.session_ttl.total_seconds())
            self.redis.setex(f"session:valid:{jti}", ttl, user_id)
            # Track token for user (for bulk revocation)
            self.redis.sadd(f"user:sessions:{user_id}", jti)
            self.redis.expire(f"user:sessions:{user_id}", ttl)

        logger.info(f"Created session token for user {user_id} with JTI {jti}")
        return token

    def create_session(self, user_id: str) -> SessionResult:
        """Mint a token and wrap it with its lifetime."""
        return SessionResult(
            user_id=user_id,
            session_token=self.mint(user_id),
            expires_in=int(self.session_ttl.total_seconds()),
        )

    def verify(self, token: str) -> str:
        """
        Verify a session token.

        Args:
            token: JWT session token

        Returns:
            The user id the token was issued to

        Raises:
            ExpiredError: If token is expired
            InvalidSignatureError: If token is malformed, forged or not a session token
            TokenRevokedError: If token is revoked
        """
        try:
            payload = jwt.decode(
                token,
                self.public_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.issuer,
                options={"require": ["exp", "iat", "sub", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredError("Session token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidSignatureError(f"Invalid session token: {e!s}")

        if payload.get("type") != TOKEN_TYPE:
            raise InvalidSignatureError("Invalid session token: wrong token type")

        jti = payload["jti"]
        if self.redis is not None and not self.redis.get(f"session:valid:{jti}"):
            logger.warning(f"Session token {jti} has been revoked")
            raise TokenRevokedError("Session token has been revoked")

        return str(payload["sub"])

    def revoke_token(self, jti: str) -> None:
        """
        Revoke a specific session token by JTI.

        Args:
            jti: JWT ID to revoke
        """
        if self.redis is None:
            logger.warning(f"Cannot revoke token {jti}: no revocation store configured")
            return
        self.redis.delete(f"session:valid:{jti}")
        logger.info(f"Revoked token {jti}")

    def revoke_all_user_tokens(self, user_id: str) -> int:
        """
        Revoke all session tokens for a user.

        Args:
            user_id: User identifier

        Returns:
            Number of tokens revoked
        """
        if self.redis is None:
            logger.warning(
                f"Sessions of user {user_id} not revoked: no revocation store configured"
            )
            return 0

        token_key = f"user:sessions:{user_id}"
        tokens = self.redis.smembers(token_key) or set()

        for jti in tokens:
            self.revoke_token(jti)

        self.redis.delete(token_key)

        logger.info(f"Revoked {len(tokens)} session tokens for user {user_id}")
        return len(tokens)
