"""
Notification sinks delivering one-time codes to users.
"""

from .email_sink import LoggingNotificationSink, SmtpNotificationSink

__all__ = ["SmtpNotificationSink", "LoggingNotificationSink"]
