"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Clearing typing indicators that were never stopped

Related files:
    - services.py: ChatPresenceService.clear_expired_typing_states
    - config/settings.py: CELERY_BEAT_SCHEDULE entry

Usage:
    from chat.tasks import clear_expired_typing_states

    clear_expired_typing_states.delay()
"""

import logging

from celery import shared_task

from chat.providers import get_chat_services

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def clear_expired_typing_states() -> int:
    """
    Clear typing flags older than the typing timeout.

    Scheduled by Celery beat every TYPING_CONFIG.SWEEP_INTERVAL_SECONDS.
    Each cleared user gets a ``user_typing_stopped`` event in their room.

    Returns:
        Number of typing states cleared
    """
    result = get_chat_services().presence.clear_expired_typing_states()
    if not result:
        logger.error(f"Typing sweep failed: {result.error}")
        return 0

    if result.data:
        logger.info(f"Cleared {result.data} expired typing states")
    return result.data
