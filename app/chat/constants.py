"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, previews, paging)
- Typing indicators (timeout and sweep cadence)
- Error codes returned in failed ServiceResults
- Realtime event names and group naming

Import example:
    from chat.constants import MESSAGE_CONFIG, TYPING_CONFIG, ChatErrorCode
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MIN_CONTENT_LENGTH: Final[int] = 1

    # Preview sent with chat_restored events
    PREVIEW_LENGTH: Final[int] = 50
    PREVIEW_SUFFIX: Final[str] = "..."

    # Paging
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # A typing flag older than this is considered stale
    TIMEOUT_SECONDS: Final[int] = 5

    # How often Celery beat runs the sweep (see CELERY_BEAT_SCHEDULE)
    SWEEP_INTERVAL_SECONDS: Final[int] = 10


# =============================================================================
# Realtime Groups
# =============================================================================


class GROUP_NAMES:
    """
    Channel layer group name prefixes.

    Channels group names may only contain ASCII alphanumerics, hyphens,
    underscores and periods, so personal channels use ``user_<id>``.
    """

    CHAT_ROOM_PREFIX: Final[str] = "chat_"
    USER_CHANNEL_PREFIX: Final[str] = "user_"


# =============================================================================
# Error Codes
# =============================================================================


class ChatErrorCode:
    """Machine-readable error codes for failed chat operations."""

    NOT_A_MEMBER: Final[str] = "NOT_A_MEMBER"
    INVALID_MEMBER_COUNT: Final[str] = "INVALID_MEMBER_COUNT"
    DUPLICATE_CHAT: Final[str] = "DUPLICATE_CHAT"
    FORBIDDEN: Final[str] = "FORBIDDEN"
    CHAT_NOT_FOUND: Final[str] = "CHAT_NOT_FOUND"
    MESSAGE_NOT_FOUND: Final[str] = "MESSAGE_NOT_FOUND"
    USER_NOT_FOUND: Final[str] = "USER_NOT_FOUND"
    ALREADY_MEMBER: Final[str] = "ALREADY_MEMBER"
    EMPTY_CONTENT: Final[str] = "EMPTY_CONTENT"
    CONTENT_TOO_LONG: Final[str] = "CONTENT_TOO_LONG"
    INVALID_REPLY: Final[str] = "INVALID_REPLY"
    CHAT_DELETED_BY_USER: Final[str] = "CHAT_DELETED_BY_USER"
    SEND_CHECK_FAILED: Final[str] = "SEND_CHECK_FAILED"
    UNREAD_COUNTER_ERROR: Final[str] = "UNREAD_COUNTER_ERROR"
    INVALID_REQUEST: Final[str] = "INVALID_REQUEST"
    UNAUTHENTICATED: Final[str] = "UNAUTHENTICATED"


class SendDenialReason:
    """Reasons returned by ChatPresenceService.can_send_messages()."""

    USER_NOT_MEMBER: Final[str] = "USER_NOT_MEMBER"
    CHAT_DELETED_BY_USER: Final[str] = "CHAT_DELETED_BY_USER"
    ERROR: Final[str] = "ERROR"


# =============================================================================
# Realtime Events
# =============================================================================


class RealtimeEvent:
    """Names of server-to-client events."""

    # Chat lifecycle
    NEW_CHAT: Final[str] = "new_chat"
    CHAT_DELETED: Final[str] = "chat_deleted"
    CHAT_HARD_DELETED: Final[str] = "chat_hard_deleted"
    CHAT_RESTORED: Final[str] = "chat_restored"
    CHATS: Final[str] = "chats"

    # Messages
    MESSAGE_RECEIVED: Final[str] = "message_received"
    MESSAGE_ERROR: Final[str] = "message_error"
    MESSAGE_READ: Final[str] = "message_read"
    MESSAGES_ALL_READ: Final[str] = "messages_all_read"

    # Presence
    USER_PRESENCE_CHANGED: Final[str] = "user_presence_changed"
    USER_TYPING: Final[str] = "user_typing"
    USER_TYPING_STOPPED: Final[str] = "user_typing_stopped"
    CHAT_PRESENCE: Final[str] = "chat_presence"

    # Notifications
    NOTIFICATION: Final[str] = "notification"
    NEW_MESSAGE_NOTIFICATION: Final[str] = "new_message_notification"
    NOTIFICATION_UPDATED: Final[str] = "notification_updated"
    UNREAD_NOTIFICATIONS: Final[str] = "unread_notifications"

    # Socket bookkeeping
    AUTHENTICATED: Final[str] = "authenticated"
    ERROR: Final[str] = "error"
