"""
Authentication middleware for FastAPI.

This module provides the bearer-token dependency guarding authenticated
routes and the request ID middleware that scopes log correlation IDs.
"""

import logging
import secrets
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from src.domain.exceptions import AuthError, ExpiredError, TokenRevokedError

from ..monitoring.logging import correlation_context
from .jwt_service import JWTService

logger = logging.getLogger(__name__)


class SessionBearer(HTTPBearer):
    """
    Session token authentication.

    Validates the session token in the Authorization header and resolves it
    to the user ID it was issued for.
    """

    def __init__(self, jwt_service: JWTService | None = None, auto_error: bool = True):
        """
        Initialize session bearer authentication.

        Args:
            jwt_service: Session token issuer. Defaults to the one registered
                on `app.state.auth`.
            auto_error: Automatically raise HTTPException on error
        """
        super().__init__(auto_error=auto_error)
        self.jwt_service = jwt_service

    async def __call__(self, request: Request) -> str | None:  # type: ignore[override]
        """
        Validate the session token from the Authorization header.

        Returns:
            User ID the token was issued for

        Raises:
            HTTPException: 401 if the token is missing, invalid, expired or revoked
        """
        credentials: HTTPAuthorizationCredentials | None = await super().__call__(request)

        if not credentials:
            if self.auto_error:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authorization required",
                    headers={"WWW-Authenticate": "Bearer"},
                )
            return None

        jwt_service = self.jwt_service or request.app.state.auth.jwt_service
        try:
            user_id = jwt_service.verify(credentials.credentials)
        except ExpiredError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except TokenRevokedError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has been revoked",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except AuthError as e:
            logger.info(f"Rejected session token: {e.message}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=e.message,
                headers={"WWW-Authenticate": "Bearer"},
            )

        # Store user context in request state
        request.state.user_id = user_id
        return user_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID middleware.

    Adds a unique request ID for tracing and uses it as the log correlation ID.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Add request ID to request, log context and response."""
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = f"req_{secrets.token_urlsafe(16)}"

        request.state.request_id = request_id

        with correlation_context(request_id):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response  # type: ignore[no-any-return]
