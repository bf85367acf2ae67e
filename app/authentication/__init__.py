"""
Authentication application.

Provides the email-based User model that owns chats, messages and
notifications. Socket clients authenticate with simplejwt access tokens
(see chat.middleware).

Usage:
    from authentication.models import User
"""
