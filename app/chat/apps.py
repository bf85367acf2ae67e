"""
Chat application configuration.

This app provides the realtime chat core with:
- Individual, group and sub-group chats
- Presence, typing indicators and read receipts
- Per-user soft delete with permanent delete once everyone has left
- The WebSocket gateway
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
