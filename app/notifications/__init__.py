"""
Notifications app for realtime chat notifications.

This app provides:
- Notification model for storing user notifications
- NotificationService, the dispatcher that delivers notifications in real
  time and persists them when the database is reachable

Usage:
    from chat.providers import get_chat_services

    notifications = get_chat_services().notifications
    notification = notifications.create_notification(
        NotificationType.MENTIONED, recipient_id=user.id, content="You were mentioned"
    )
"""
