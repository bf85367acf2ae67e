"""
Django admin configuration for notifications.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin interface for Notification model."""

    list_display = ["id", "notification_type", "recipient", "sender", "is_read", "created_at"]
    list_filter = ["notification_type", "is_read", "created_at"]
    search_fields = ["content", "recipient__email"]
    raw_id_fields = ["recipient", "sender", "chat", "message"]
    readonly_fields = ["created_at", "updated_at"]
