"""
Constants for the notification dispatcher.

Import example:
    from notifications.constants import DISPATCH_CONFIG, NotificationErrorCode
"""

from typing import Final


class DISPATCH_CONFIG:
    """Configuration for notification dispatch."""

    # Minimum seconds between database health probes while degraded
    PROBE_INTERVAL_SECONDS: Final[int] = 30

    # Message content included in NEW_MESSAGE notification text
    CONTENT_PREVIEW_LENGTH: Final[int] = 50

    # Circuit name used in log records
    CIRCUIT_NAME: Final[str] = "notifications"


class NotificationErrorCode:
    """Machine-readable error codes for failed notification operations."""

    NOTIFICATION_NOT_FOUND: Final[str] = "NOTIFICATION_NOT_FOUND"
    NOT_OWNER: Final[str] = "NOT_OWNER"
