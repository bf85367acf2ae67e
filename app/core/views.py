"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the chat domain but are
essential for application infrastructure, such as health checks.
"""

from django.http import JsonResponse

from core.circuit_breaker import database_probe


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    The database being down does not stop realtime delivery (notifications
    degrade to unpersisted), so it is reported as "degraded" with HTTP 200
    rather than failing the probe. The persistence circuit of the
    notification dispatcher in this process is included for visibility.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "notifications": {"name": "notifications", "state": "DB_CONNECTED", ...}
        }
    """
    from chat.providers import get_chat_services

    database_ok = database_probe()
    health_status = {
        "status": "healthy" if database_ok else "degraded",
        "database": "connected" if database_ok else "disconnected",
        "notifications": get_chat_services().notifications.circuit.get_status(),
    }
    return JsonResponse(health_status, status=200)
