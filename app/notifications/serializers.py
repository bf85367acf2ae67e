"""
Serializers for notification payloads.

Payloads are built from ids only, never following relations, so an
unpersisted notification can be serialized while the database is down.
"""

from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Realtime ``notification`` payload."""

    type = serializers.CharField(source="notification_type")
    recipientId = serializers.IntegerField(source="recipient_id")
    senderId = serializers.IntegerField(source="sender_id", allow_null=True)
    chatId = serializers.UUIDField(source="chat_id", allow_null=True)
    messageId = serializers.UUIDField(source="message_id", allow_null=True)
    read = serializers.BooleanField(source="is_read")
    createdAt = serializers.DateTimeField(source="created_at")

    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "recipientId",
            "senderId",
            "chatId",
            "messageId",
            "content",
            "read",
            "createdAt",
        ]
