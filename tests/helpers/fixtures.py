"""Test doubles shared by the authentication test suite."""

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import redis

from src.domain.entities.user import OtpPurpose

STRONG_PASSWORD = "Str0ng!Pass1234"
NEW_STRONG_PASSWORD = "N3w!Secure-Pass99"


class FrozenClock:
    """Manually advanced clock for expiry and cooldown tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 9, 30, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


class RecordingSink:
    """Notification sink that remembers every code it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, OtpPurpose, str]] = []
        self.fail = False
        self.raise_error: Exception | None = None

    async def send_otp(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        if self.raise_error is not None:
            raise self.raise_error
        self.sent.append((email, purpose, code))
        return not self.fail

    def last_code(self, email: str | None = None, purpose: OtpPurpose | None = None) -> str:
        for sent_email, sent_purpose, code in reversed(self.sent):
            if email is not None and sent_email != email:
                continue
            if purpose is not None and sent_purpose is not purpose:
                continue
            return code
        raise AssertionError(f"No code sent to {email} for {purpose}")


def make_mock_redis() -> Mock:
    """Mock Redis client backed by dicts, covering the commands used for revocation."""
    client = Mock(spec=redis.Redis)

    # Storage for mock Redis data
    storage: dict[str, str] = {}
    sets: dict[str, set[str]] = {}

    def mock_setex(key, ttl, value):
        storage[key] = value
        return True

    def mock_get(key):
        return storage.get(key)

    def mock_delete(*keys):
        removed = 0
        for key in keys:
            removed += int(storage.pop(key, None) is not None)
            removed += int(sets.pop(key, None) is not None)
        return removed

    def mock_sadd(key, *members):
        sets.setdefault(key, set()).update(members)
        return len(members)

    def mock_smembers(key):
        return set(sets.get(key, set()))

    client.setex = Mock(side_effect=mock_setex)
    client.get = Mock(side_effect=mock_get)
    client.delete = Mock(side_effect=mock_delete)
    client.sadd = Mock(side_effect=mock_sadd)
    client.smembers = Mock(side_effect=mock_smembers)
    client.expire = Mock(return_value=True)
    client.storage = storage
    return client
