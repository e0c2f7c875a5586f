"""
Tests for authentication middleware components.
"""

from unittest.mock import Mock

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from src.domain.exceptions import ExpiredError, InvalidSignatureError, TokenRevokedError
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.auth.middleware import RequestIDMiddleware, SessionBearer
from src.infrastructure.monitoring.logging import get_correlation_id


class TestSessionBearer:
    """Test session bearer authentication."""

    @pytest.fixture
    def jwt_service(self):
        return Mock(spec=JWTService)

    @pytest.fixture
    def client(self, jwt_service):
        app = FastAPI()

        @app.get("/protected")
        async def protected(request: Request, user_id: str = Depends(SessionBearer(jwt_service))):
            return {"user_id": user_id, "state_user_id": request.state.user_id}

        return TestClient(app)

    def test_valid_token(self, client, jwt_service):
        jwt_service.verify.return_value = "user123"

        response = client.get("/protected", headers={"Authorization": "Bearer good-token"})

        assert response.status_code == 200
        assert response.json() == {"user_id": "user123", "state_user_id": "user123"}
        jwt_service.verify.assert_called_once_with("good-token")

    def test_missing_token(self, client, jwt_service):
        response = client.get("/protected")

        assert response.status_code in (401, 403)
        jwt_service.verify.assert_not_called()

    @pytest.mark.parametrize(
        "error,detail",
        [
            (ExpiredError("expired"), "Token has expired"),
            (TokenRevokedError("revoked"), "Token has been revoked"),
            (InvalidSignatureError("Invalid session token: bad"), "Invalid session token: bad"),
        ],
    )
    def test_rejected_token(self, client, jwt_service, error, detail):
        jwt_service.verify.side_effect = error

        response = client.get("/protected", headers={"Authorization": "Bearer bad-token"})

        assert response.status_code == 401
        assert response.json()["detail"] == detail
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_resolves_jwt_service_from_app_state(self, jwt_service):
        app = FastAPI()
        app.state.auth = Mock(jwt_service=jwt_service)
        jwt_service.verify.return_value = "user456"

        @app.get("/protected")
        async def protected(user_id: str = Depends(SessionBearer())):
            return {"user_id": user_id}

        response = TestClient(app).get("/protected", headers={"Authorization": "Bearer t"})

        assert response.json() == {"user_id": "user456"}


class TestRequestIDMiddleware:
    """Test request ID propagation."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(RequestIDMiddleware)

        @app.get("/echo")
        async def echo(request: Request):
            return {"request_id": request.state.request_id, "correlation_id": get_correlation_id()}

        return TestClient(app)

    def test_generates_request_id(self, client):
        response = client.get("/echo")

        request_id = response.headers["X-Request-ID"]
        assert request_id.startswith("req_")
        assert response.json() == {"request_id": request_id, "correlation_id": request_id}

    def test_keeps_incoming_request_id(self, client):
        response = client.get("/echo", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.json()["correlation_id"] == "abc-123"
