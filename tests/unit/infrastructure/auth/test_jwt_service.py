"""
Tests for the JWT session token service.

This test suite covers:
- Token minting and verification
- Expiration handling
- Forged, malformed and wrong-type tokens
- Revocation through Redis
- Key loading from PEM files
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.domain.exceptions import ExpiredError, InvalidSignatureError, TokenRevokedError
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.config import SessionConfig


def encode_with(service: JWTService, **overrides) -> str:
    """Sign a session token with the service key and custom claims."""
    now = datetime.now(UTC)
    payload = {
        "iss": service.issuer,
        "sub": "user123",
        "aud": [service.issuer],
        "exp": now + timedelta(hours=1),
        "nbf": now,
        "iat": now,
        "jti": "sess_test",
        "type": "session",
    }
    payload.update(overrides)
    return jwt.encode(payload, service.private_key, algorithm="RS256")


class TestJWTService:
    """Test JWT service functionality."""

    def test_service_initialization(self, mock_redis):
        """Test JWT service initialization."""
        service = JWTService(
            SessionConfig(issuer="test-issuer", session_ttl_minutes=30), redis_client=mock_redis
        )

        assert service.issuer == "test-issuer"
        assert service.algorithm == "RS256"
        assert service.session_ttl == timedelta(minutes=30)
        assert service.redis is mock_redis
        assert service.private_key is not None
        assert service.public_key is not None

    def test_mint_and_verify(self, jwt_service):
        token = jwt_service.mint("user123")

        assert jwt_service.verify(token) == "user123"

    def test_token_claims(self, jwt_service):
        token = jwt_service.mint("user123")

        header = jwt.get_unverified_header(token)
        claims = jwt.decode(token, options={"verify_signature": False})

        assert header["alg"] == "RS256"
        assert header["kid"] == jwt_service.key_id
        assert claims["sub"] == "user123"
        assert claims["iss"] == "auth-core-test"
        assert claims["type"] == "session"
        assert claims["jti"].startswith("sess_")
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    def test_create_session(self, jwt_service):
        session = jwt_service.create_session("user123")

        assert session.user_id == "user123"
        assert session.token_type == "Bearer"
        assert session.expires_in == 86400
        assert jwt_service.verify(session.session_token) == "user123"

    def test_tokens_are_unique(self, jwt_service):
        assert jwt_service.mint("user123") != jwt_service.mint("user123")

    def test_expired_token(self, jwt_service):
        past = datetime.now(UTC) - timedelta(hours=2)
        token = encode_with(
            jwt_service, iat=past, nbf=past, exp=past + timedelta(hours=1)
        )

        with pytest.raises(ExpiredError):
            jwt_service.verify(token)

    def test_forged_token(self, jwt_service):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "iss": jwt_service.issuer,
                "sub": "attacker",
                "aud": [jwt_service.issuer],
                "exp": now + timedelta(hours=1),
                "iat": now,
                "jti": "sess_forged",
                "type": "session",
            },
            other_key,
            algorithm="RS256",
        )

        with pytest.raises(InvalidSignatureError):
            jwt_service.verify(token)

    @pytest.mark.parametrize("token", ["", "not.a.jwt", "a.b.c"])
    def test_malformed_token(self, jwt_service, token):
        with pytest.raises(InvalidSignatureError):
            jwt_service.verify(token)

    def test_wrong_token_type(self, jwt_service):
        token = encode_with(jwt_service, type="refresh")

        with pytest.raises(InvalidSignatureError):
            jwt_service.verify(token)

    def test_wrong_issuer(self, jwt_service):
        token = encode_with(jwt_service, iss="someone-else")

        with pytest.raises(InvalidSignatureError):
            jwt_service.verify(token)

    def test_missing_subject(self, jwt_service):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "iss": jwt_service.issuer,
                "aud": [jwt_service.issuer],
                "exp": now + timedelta(hours=1),
                "iat": now,
                "jti": "sess_nosub",
                "type": "session",
            },
            jwt_service.private_key,
            algorithm="RS256",
        )

        with pytest.raises(InvalidSignatureError):
            jwt_service.verify(token)


class TestRevocation:
    """Test revocation tracking."""

    def test_minted_token_tracked(self, jwt_service, mock_redis):
        token = jwt_service.mint("user123")
        jti = jwt.decode(token, options={"verify_signature": False})["jti"]

        mock_redis.setex.assert_called_once_with(f"session:valid:{jti}", 86400, "user123")
        mock_redis.sadd.assert_called_once_with("user:sessions:user123", jti)

    def test_untracked_token_is_revoked(self, jwt_service):
        """A validly signed token the store does not know is refused."""
        token = encode_with(jwt_service)

        with pytest.raises(TokenRevokedError):
            jwt_service.verify(token)

    def test_revoke_token(self, jwt_service):
        token = jwt_service.mint("user123")
        jti = jwt.decode(token, options={"verify_signature": False})["jti"]

        jwt_service.revoke_token(jti)

        with pytest.raises(TokenRevokedError):
            jwt_service.verify(token)

    def test_revoke_all_user_tokens(self, jwt_service):
        first = jwt_service.mint("user123")
        second = jwt_service.mint("user123")
        other = jwt_service.mint("user456")

        revoked = jwt_service.revoke_all_user_tokens("user123")

        assert revoked == 2
        for token in (first, second):
            with pytest.raises(TokenRevokedError):
                jwt_service.verify(token)
        assert jwt_service.verify(other) == "user456"

    def test_stateless_without_redis(self):
        service = JWTService(SessionConfig())
        token = service.mint("user123")

        assert service.revoke_all_user_tokens("user123") == 0
        assert service.verify(token) == "user123"

    def test_redis_from_url(self, mock_redis):
        with patch("src.infrastructure.auth.jwt_service.redis.from_url") as mock_from_url:
            mock_from_url.return_value = mock_redis
            service = JWTService(SessionConfig(redis_url="redis://localhost:6379/0"))

        mock_from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)
        assert service.redis is mock_redis


class TestKeyManagement:
    """Test key loading."""

    def test_load_keys_from_files(self, tmp_path):
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        private_path = tmp_path / "private.pem"
        public_path = tmp_path / "public.pem"
        private_path.write_bytes(
            private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        public_path.write_bytes(
            private_key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

        config = SessionConfig(private_key_path=str(private_path), public_key_path=str(public_path))
        first = JWTService(config)
        second = JWTService(config)

        # Both instances share the key, so tokens survive a restart
        assert second.verify(first.mint("user123")) == "user123"

    def test_public_key_derived_from_private_key(self, tmp_path):
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        private_path = tmp_path / "private.pem"
        private_path.write_bytes(
            private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )

        service = JWTService(SessionConfig(private_key_path=str(private_path)))

        assert service.verify(service.mint("user123")) == "user123"

    def test_production_requires_key(self):
        with pytest.raises(RuntimeError, match="private key is required"):
            JWTService(SessionConfig(environment="production"))

    def test_environment_comes_from_config(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")

        service = JWTService(SessionConfig(environment="development"))

        assert service.verify(service.mint("user123")) == "user123"
