"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Chat management with member inline
- Per-user state inspection
- Message moderation
"""

from django.contrib import admin

from chat.models import Chat, ChatMember, ChatUserState, Message


class ChatMemberInline(admin.TabularInline):
    """Inline display of members in chat admin."""

    model = ChatMember
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    """Admin interface for Chat model."""

    list_display = ["id", "chat_type", "name", "created_at", "updated_at"]
    list_filter = ["chat_type", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [ChatMemberInline]


@admin.register(ChatUserState)
class ChatUserStateAdmin(admin.ModelAdmin):
    """Admin interface for per-user chat state."""

    list_display = [
        "chat",
        "user",
        "is_online",
        "is_typing",
        "unread_count",
        "is_muted",
        "is_deleted",
    ]
    list_filter = ["is_online", "is_muted", "is_deleted"]
    raw_id_fields = ["user", "chat", "last_read_message"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "chat", "sender", "content_preview", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["content", "sender__email"]
    raw_id_fields = ["chat", "sender", "reply_to"]
    readonly_fields = ["created_at", "updated_at"]

    @admin.display(description="Content")
    def content_preview(self, obj: Message) -> str:
        return obj.preview(50)
