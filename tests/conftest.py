"""Global pytest configuration and fixtures."""

# Standard library imports
import sys
from pathlib import Path
from unittest.mock import Mock

# Load test environment variables
from dotenv import load_dotenv

test_env_path = Path(__file__).parent.parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)

# Third-party imports
import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Local imports
from src.infrastructure.auth.jwt_service import JWTService
from src.infrastructure.auth.services.user_service import UserService
from src.infrastructure.config import AuthConfig, SessionConfig
from src.infrastructure.repositories.memory_repository import InMemoryCredentialStore
from tests.helpers import FrozenClock, RecordingSink, make_mock_redis


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen clock starting at a fixed UTC instant."""
    return FrozenClock()


@pytest.fixture
def auth_config() -> AuthConfig:
    """Auth config with the cheapest bcrypt cost, for fast tests."""
    return AuthConfig(bcrypt_rounds=4, otp_secret="test-otp-secret")


@pytest.fixture
def store(clock) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(clock)


@pytest.fixture
def mock_redis() -> Mock:
    return make_mock_redis()


@pytest.fixture
def jwt_service(mock_redis) -> JWTService:
    """JWT service with ephemeral keys and mock revocation store."""
    return JWTService(SessionConfig(issuer="auth-core-test"), redis_client=mock_redis)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def user_service(store, jwt_service, sink, auth_config, clock) -> UserService:
    return UserService(store, jwt_service, sink, auth_config, clock)
