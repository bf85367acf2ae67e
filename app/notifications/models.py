"""
Notification system models.

This module defines:
- NotificationType: Kinds of chat notifications
- Notification: Individual notification sent to a user

Design Decisions:
    - Notification ids are UUIDs so unpersisted notifications (built while
      the database is unreachable) still carry a unique id
    - sender uses SET_NULL (preserve notification when sender deleted)
    - chat and message CASCADE; the chat hard delete also removes them
      explicitly before messages
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Kinds of chat notifications."""

    NEW_MESSAGE = "NEW_MESSAGE", "New message"
    MESSAGE_READ = "MESSAGE_READ", "Message read"
    USER_JOINED_CHAT = "USER_JOINED_CHAT", "User joined chat"
    USER_LEFT_CHAT = "USER_LEFT_CHAT", "User left chat"
    CHAT_CREATED = "CHAT_CREATED", "Chat created"
    MENTIONED = "MENTIONED", "Mentioned"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Fields:
        notification_type: NotificationType value
        recipient: User receiving the notification (scopes all queries)
        sender: Optional user who triggered the notification
        chat: Optional chat the notification refers to
        message: Optional message the notification refers to
        content: Fully rendered text
        is_read: Whether recipient has read this notification

    Usage:
        unread = Notification.objects.filter(recipient=user, is_read=False)
    """

    notification_type = models.CharField(
        max_length=32,
        choices=NotificationType.choices,
        help_text="Kind of notification",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_notifications",
        help_text="User who triggered this notification (optional)",
    )
    chat = models.ForeignKey(
        "chat.Chat",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    message = models.ForeignKey(
        "chat.Message",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    content = models.TextField(help_text="Fully rendered notification text")
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            # Primary query: user's unread notifications
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.notification_type}) -> User {self.recipient_id} [{read_status}]"
