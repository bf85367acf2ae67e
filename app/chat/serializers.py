"""
Serializers for chat realtime payloads.

This module provides read-only serializers for the objects the gateway
pushes to clients:
- MessageSerializer: ``message_received`` payload
- ChatUserStateSerializer: presence and unread state
- ChatSerializer: chat summary with members and last message

Design Decisions:
    - Payload keys are camelCase to match the client event contract
    - Ids are read from ``*_id`` attributes so serializing never
      triggers extra queries for foreign keys
"""

from __future__ import annotations

from rest_framework import serializers

from chat.models import Chat, ChatMember, ChatUserState, Message


class ParticipantSerializer(serializers.Serializer):
    """Minimal user representation embedded in chat payloads."""

    id = serializers.IntegerField()
    name = serializers.SerializerMethodField()

    def get_name(self, user) -> str:
        return user.get_full_name()


class ReplyToSerializer(serializers.ModelSerializer):
    """The message being answered, without its own reply chain."""

    senderId = serializers.IntegerField(source="sender_id")
    createdAt = serializers.DateTimeField(source="created_at")

    class Meta:
        model = Message
        fields = ["id", "content", "senderId", "createdAt"]


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message object.

    Includes the sender as {id, name} and the reply target, if any.
    """

    senderId = serializers.IntegerField(source="sender_id")
    chatId = serializers.UUIDField(source="chat_id")
    replyToId = serializers.UUIDField(source="reply_to_id", allow_null=True)
    sender = ParticipantSerializer()
    replyTo = ReplyToSerializer(source="reply_to", allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Message
        fields = [
            "id",
            "content",
            "senderId",
            "chatId",
            "replyToId",
            "sender",
            "replyTo",
            "createdAt",
            "updatedAt",
        ]


class ChatUserStateSerializer(serializers.ModelSerializer):
    """Per-user presence, typing and unread state within a chat."""

    userId = serializers.IntegerField(source="user_id")
    chatId = serializers.UUIDField(source="chat_id")
    isOnline = serializers.BooleanField(source="is_online")
    lastSeen = serializers.DateTimeField(source="last_seen", allow_null=True)
    isTyping = serializers.BooleanField(source="is_typing")
    lastReadMessageId = serializers.UUIDField(source="last_read_message_id", allow_null=True)
    unreadCount = serializers.IntegerField(source="unread_count")
    isMuted = serializers.BooleanField(source="is_muted")
    isDeleted = serializers.BooleanField(source="is_deleted")

    class Meta:
        model = ChatUserState
        fields = [
            "userId",
            "chatId",
            "isOnline",
            "lastSeen",
            "isTyping",
            "lastReadMessageId",
            "unreadCount",
            "isMuted",
            "isDeleted",
        ]


class ChatSerializer(serializers.ModelSerializer):
    """
    Chat summary for chat lists.

    ``members`` expects the ``members`` relation prefetched with users
    (as ChatService.get_chats_by_user_id does).
    """

    type = serializers.CharField(source="chat_type")
    members = serializers.SerializerMethodField()
    lastMessage = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Chat
        fields = ["id", "name", "type", "members", "lastMessage", "createdAt", "updatedAt"]

    def get_members(self, chat: Chat) -> list[dict]:
        members: list[ChatMember] = list(chat.members.all())
        return ParticipantSerializer([member.user for member in members], many=True).data

    def get_lastMessage(self, chat: Chat) -> dict | None:
        message = chat.messages.select_related("sender").order_by("-created_at").first()
        if message is None:
            return None
        return {
            "id": str(message.id),
            "content": message.content,
            "senderId": message.sender_id,
            "createdAt": serializers.DateTimeField().to_representation(message.created_at),
        }
