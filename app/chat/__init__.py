"""
Chat app for realtime messaging.

This app handles:
- Chats (individual, group, sub-group) and their members
- Message sending and history
- Presence, typing indicators, read receipts and unread counters
- WebSocket realtime updates

Related apps:
    - authentication: User model for members
    - notifications: Notification dispatch for new messages and chats

WebSocket Support:
    Uses Django Channels for realtime communication.
    See consumers.py for the gateway and routing.py for URL patterns.

Usage:
    from chat.models import ChatType
    from chat.providers import get_chat_services

    services = get_chat_services()
    result = services.chats.create_chat(
        [user.id, other_user.id], ChatType.INDIVIDUAL, creator_id=user.id
    )
    services.messages.create_message("Hello!", user.id, result.data.id)
"""
