"""Infrastructure Layer for the account authentication service.

This module provides concrete implementations of the domain interfaces and the
services built on them.

Key modules:
- auth: OTP engine, password codec, account flows, session tokens and the HTTP API
- repositories: Credential store implementations (in-memory, SQLAlchemy)
- notifications: One-time code delivery (SMTP, log-only)
- monitoring: Structured logging with correlation IDs and secret masking
- config: Environment-driven configuration

Example usage:
    from src.infrastructure.auth.app import create_app
    from src.infrastructure.config import Config

    app = create_app(Config.from_env())
"""
