"""
Configuration Management - Loads authentication settings from the environment

Every service receives its configuration explicitly at construction; nothing in
the authentication core reads the environment on its own.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()


def _is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development") == "production"


@dataclass
class AuthConfig:
    """Limits and lifetimes of the authentication flows"""

    otp_length: int = 6
    otp_expiry_seconds: int = 300
    max_otp_attempts: int = 5
    resend_cooldown_seconds: int = 60
    reset_token_expiry_seconds: int = 300
    bcrypt_rounds: int = 12
    max_update_retries: int = 3
    # Keys the HMAC over stored one-time codes
    otp_secret: str = field(default="development-otp-secret", repr=False)

    def __post_init__(self) -> None:
        if not 4 <= self.otp_length <= 16:
            raise ValueError("otp_length must be between 4 and 16")
        if self.max_otp_attempts < 1:
            raise ValueError("max_otp_attempts must be at least 1")
        if self.max_update_retries < 1:
            raise ValueError("max_update_retries must be at least 1")

    @property
    def otp_expiry(self) -> timedelta:
        return timedelta(seconds=self.otp_expiry_seconds)

    @property
    def resend_cooldown(self) -> timedelta:
        return timedelta(seconds=self.resend_cooldown_seconds)

    @property
    def reset_token_expiry(self) -> timedelta:
        return timedelta(seconds=self.reset_token_expiry_seconds)

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Load auth flow config from environment variables"""
        otp_secret = os.getenv("AUTH_OTP_SECRET")
        if not otp_secret:
            if _is_production():
                raise RuntimeError(
                    "AUTH_OTP_SECRET is required in production. "
                    "Generate one with: python -c 'import secrets; print(secrets.token_hex(32))'"
                )
            logger.warning("AUTH_OTP_SECRET not set - using the development default")
            otp_secret = "development-otp-secret"

        return cls(
            otp_length=int(os.getenv("AUTH_OTP_LENGTH", "6")),
            otp_expiry_seconds=int(os.getenv("AUTH_OTP_EXPIRY_SECONDS", "300")),
            max_otp_attempts=int(os.getenv("AUTH_MAX_OTP_ATTEMPTS", "5")),
            resend_cooldown_seconds=int(os.getenv("AUTH_RESEND_COOLDOWN_SECONDS", "60")),
            reset_token_expiry_seconds=int(os.getenv("AUTH_RESET_TOKEN_EXPIRY_SECONDS", "300")),
            bcrypt_rounds=int(os.getenv("AUTH_BCRYPT_ROUNDS", "12")),
            max_update_retries=int(os.getenv("AUTH_MAX_UPDATE_RETRIES", "3")),
            otp_secret=otp_secret,
        )


@dataclass
class SessionConfig:
    """Session token signing settings"""

    issuer: str = "auth-core"
    session_ttl_minutes: int = 1440
    private_key_path: str | None = None
    public_key_path: str | None = None
    redis_url: str | None = None
    # Ephemeral signing keys are refused in production
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Load session token config from environment variables"""
        return cls(
            issuer=os.getenv("AUTH_JWT_ISSUER", "auth-core"),
            session_ttl_minutes=int(os.getenv("AUTH_SESSION_TTL_MINUTES", "1440")),
            private_key_path=os.getenv("AUTH_JWT_PRIVATE_KEY_PATH"),
            public_key_path=os.getenv("AUTH_JWT_PUBLIC_KEY_PATH"),
            redis_url=os.getenv("REDIS_URL"),
            environment=os.getenv("ENVIRONMENT", "development"),
        )


@dataclass
class SmtpConfig:
    """Outbound email settings for one-time code delivery"""

    host: str
    port: int
    username: str
    password: str = field(repr=False)
    from_email: str
    from_name: str
    use_tls: bool

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.from_email)

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        """Load SMTP config from environment variables"""
        return cls(
            host=os.getenv("SMTP_HOST", ""),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USERNAME", ""),
            password=os.getenv("SMTP_PASSWORD", ""),
            from_email=os.getenv("SMTP_FROM_EMAIL", ""),
            from_name=os.getenv("SMTP_FROM_NAME", "Account Security"),
            use_tls=os.getenv("SMTP_TLS", "true").lower() == "true",
        )


@dataclass
class Config:
    """Application configuration"""

    auth: AuthConfig
    session: SessionConfig
    smtp: SmtpConfig
    database_url: str
    environment: str
    log_level: str
    log_format: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load all configuration from environment variables"""
        return cls(
            auth=AuthConfig.from_env(),
            session=SessionConfig.from_env(),
            smtp=SmtpConfig.from_env(),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./auth.db"),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )
