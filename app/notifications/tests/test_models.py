"""
Tests for the Notification model.
"""

from notifications.models import Notification, NotificationType
from notifications.tests.factories import NotificationFactory


class TestNotification:
    def test_defaults_to_unread(self, alice):
        notification = NotificationFactory(recipient=alice)

        assert notification.is_read is False
        assert notification.created_at is not None

    def test_newest_first(self, alice):
        older = NotificationFactory(recipient=alice)
        newer = NotificationFactory(recipient=alice)

        assert list(Notification.objects.filter(recipient=alice)) == [newer, older]

    def test_sender_deletion_keeps_notification(self, alice, bob):
        notification = NotificationFactory(recipient=alice, sender=bob)

        bob.delete()

        notification.refresh_from_db()
        assert notification.sender_id is None

    def test_recipient_deletion_removes_notification(self, alice):
        notification = NotificationFactory(recipient=alice)

        alice.delete()

        assert not Notification.objects.filter(id=notification.id).exists()

    def test_str_shows_type_and_read_state(self, alice):
        notification = NotificationFactory(
            recipient=alice, notification_type=NotificationType.CHAT_CREATED
        )

        assert str(notification) == f"Notification(CHAT_CREATED) -> User {alice.id} [unread]"
