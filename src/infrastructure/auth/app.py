"""
FastAPI application wiring for the authentication service.

Builds the credential store, notification sink, session issuer and user
service from configuration and exposes them to the router via `app.state.auth`.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis
from fastapi import FastAPI
from sqlalchemy import create_engine

from src.domain.interfaces.credential_store import CredentialStore
from src.domain.interfaces.notification_sink import NotificationSink

from ..config import Config
from ..monitoring.logging import setup_structured_logging
from ..notifications import LoggingNotificationSink, SmtpNotificationSink
from ..repositories import InMemoryCredentialStore, SqlAlchemyCredentialStore
from .endpoints import register_exception_handlers, router
from .jwt_service import JWTService
from .middleware import RequestIDMiddleware
from .services.concurrency import Clock, utc_now
from .services.user_service import UserService

logger = logging.getLogger(__name__)

MEMORY_DATABASE_URL = "memory://"


@dataclass
class AuthContainer:
    """Services shared by all requests of one application."""

    config: Config
    store: CredentialStore
    notifier: NotificationSink
    jwt_service: JWTService
    user_service: UserService

    @classmethod
    def build(
        cls,
        config: Config,
        store: CredentialStore | None = None,
        notifier: NotificationSink | None = None,
        redis_client: redis.Redis | None = None,
        clock: Clock = utc_now,
    ) -> "AuthContainer":
        """
        Build the services from configuration.

        Any of the adapters can be passed in to replace the configured one.
        """
        store = store or create_store(config.database_url)
        notifier = notifier or create_notifier(config)
        jwt_service = JWTService(config.session, redis_client=redis_client)
        user_service = UserService(store, jwt_service, notifier, config.auth, clock)
        return cls(config, store, notifier, jwt_service, user_service)


def create_store(database_url: str) -> CredentialStore:
    """Credential store for a database URL; `memory://` keeps users in process."""
    if database_url == MEMORY_DATABASE_URL:
        logger.warning("Using in-memory credential store; users are lost on restart")
        return InMemoryCredentialStore()

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )
    return SqlAlchemyCredentialStore.from_engine(engine, create_schema=True)


def create_notifier(config: Config) -> NotificationSink:
    """SMTP sink when SMTP is configured, otherwise a log-only sink."""
    if config.smtp.enabled:
        return SmtpNotificationSink(config.smtp, config.auth.otp_expiry_seconds // 60)
    logger.warning("SMTP not configured; one-time codes will not be emailed")
    return LoggingNotificationSink()


def create_app(config: Config | None = None, container: AuthContainer | None = None) -> FastAPI:
    """
    Create the authentication API application.

    Args:
        config: Application configuration, loaded from the environment if omitted
        container: Prebuilt services, built from `config` if omitted

    Returns:
        Configured FastAPI application
    """
    if container is None:
        config = config or Config.from_env()
        setup_structured_logging(config.log_level, config.log_format)
        container = AuthContainer.build(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info(f"Starting authentication service ({container.config.environment})")
        yield
        logger.info("Shutting down authentication service")

    app = FastAPI(
        title="Account Authentication API",
        description="OTP-gated registration, login and password reset",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.auth = container

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    app.include_router(router)

    return app
