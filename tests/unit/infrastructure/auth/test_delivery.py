"""
Unit tests for one-time code delivery.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from src.domain.entities.user import OtpPurpose
from src.infrastructure.auth.services.delivery import OtpDispatcher


@pytest.mark.asyncio
async def test_dispatch_delivers_once():
    sink = AsyncMock()
    sink.send_otp.return_value = True

    delivered = await OtpDispatcher(sink).dispatch("ann@x.com", OtpPurpose.LOGIN, "123456")

    assert delivered is True
    sink.send_otp.assert_awaited_once_with("ann@x.com", OtpPurpose.LOGIN, "123456")


@pytest.mark.asyncio
async def test_rejected_delivery_is_logged(caplog):
    sink = AsyncMock()
    sink.send_otp.return_value = False

    with caplog.at_level(logging.ERROR):
        delivered = await OtpDispatcher(sink).dispatch("ann@x.com", OtpPurpose.LOGIN, "123456")

    assert delivered is False
    assert "failed" in caplog.text
    sink.send_otp.assert_awaited_once()


@pytest.mark.asyncio
async def test_sink_exception_is_absorbed_without_retry(caplog):
    sink = AsyncMock()
    sink.send_otp.side_effect = ConnectionError("smtp down")

    with caplog.at_level(logging.ERROR):
        delivered = await OtpDispatcher(sink).dispatch(
            "ann@x.com", OtpPurpose.REGISTRATION, "123456"
        )

    assert delivered is False
    assert "smtp down" in caplog.text
    assert "123456" not in caplog.text
    sink.send_otp.assert_awaited_once()
