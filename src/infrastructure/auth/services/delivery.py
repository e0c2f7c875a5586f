"""
One-time code delivery.

Delivery is at-most-once and best effort: a failed send is logged and the
issued code stays valid. Nothing here retries, since a retried send could
reach the user twice.
"""

import logging

from src.domain.entities.user import OtpPurpose
from src.domain.interfaces.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


class OtpDispatcher:
    """Hands issued codes to the notification sink and absorbs its failures."""

    def __init__(self, sink: NotificationSink) -> None:
        self.sink = sink

    async def dispatch(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        """
        Send a code to its owner.

        Returns:
            True if the sink accepted the message
        """
        try:
            delivered = await self.sink.send_otp(email, purpose, code)
        except Exception as e:
            logger.error(f"Delivery of {purpose.value} code to {email} raised: {e!s}")
            return False

        if not delivered:
            logger.error(f"Delivery of {purpose.value} code to {email} failed")
        return delivered
