"""Test helper utilities for the authentication test suite."""

from tests.helpers.fixtures import (
    NEW_STRONG_PASSWORD,
    STRONG_PASSWORD,
    FrozenClock,
    RecordingSink,
    make_mock_redis,
)

__all__ = [
    "STRONG_PASSWORD",
    "NEW_STRONG_PASSWORD",
    "FrozenClock",
    "RecordingSink",
    "make_mock_redis",
]
