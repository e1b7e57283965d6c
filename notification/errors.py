"""
Notification error hierarchy.

Only `ValueError` (bad arguments) escapes `Dispatcher.send` and
`BulkDispatcher.send_bulk`; everything below is caught at the boundary of
the unit of work it affects and reported in a result object.
"""

from typing import Any, Optional


class NotificationError(Exception):
    """Base class for notification layer failures."""


class UserNotFound(NotificationError):
    """Recipient does not exist; fatal to one send, no record is created."""

    def __init__(self, user_id: Any):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class ChannelSendFailure(NotificationError):
    """One outbound channel failed. Never fatal to the dispatch."""

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} send failed: {reason}")


class DetectorQueryFailure(NotificationError):
    """Scanning query failed; aborts the current tick of one detector."""

    def __init__(self, detector: str, cause: Exception):
        self.detector = detector
        self.cause = cause
        super().__init__(f"{detector} query failed: {cause}")


class DedupCheckFailure(NotificationError):
    """Notification log lookup failed; the candidate is skipped."""


class RateLimitException(NotificationError):
    """Transport answered HTTP 429."""

    def __init__(self, message: str = "Rate limited", retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)
