"""Out-of-band delivery of one-time codes."""

from typing import Protocol, runtime_checkable

from ..entities.user import OtpPurpose


@runtime_checkable
class NotificationSink(Protocol):
    """
    Delivers a plaintext code to the account owner.

    Delivery is best effort: implementations report failure by returning False
    (or raising), and the caller logs it without undoing the code issuance.
    """

    async def send_otp(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        """Send `code` for `purpose` to `email`. Returns True if it was handed off."""
        ...
