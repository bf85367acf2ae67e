"""
Tests for the notification payload serializer.
"""

import uuid

from django.utils import timezone

from notifications.models import Notification, NotificationType
from notifications.serializers import NotificationSerializer


def test_serializes_unsaved_notification_without_queries(db, django_assert_num_queries):
    notification = Notification(
        id=uuid.uuid4(),
        notification_type=NotificationType.NEW_MESSAGE,
        recipient_id=3,
        sender_id=4,
        chat_id=uuid.uuid4(),
        content="New message from Ann: hi",
        created_at=timezone.now(),
    )

    with django_assert_num_queries(0):
        data = NotificationSerializer(notification).data

    assert data["id"] == str(notification.id)
    assert data["type"] == "NEW_MESSAGE"
    assert data["recipientId"] == 3
    assert data["senderId"] == 4
    assert data["chatId"] == str(notification.chat_id)
    assert data["messageId"] is None
    assert data["read"] is False
