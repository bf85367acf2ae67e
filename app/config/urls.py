"""
URL configuration for the realtime chat backend.

HTTP is limited to infrastructure endpoints; chat traffic arrives over
WebSockets (see chat.routing).

URL Structure:
    /admin/     - Django admin interface
    /health/    - Health check endpoint (for load balancers, Docker)
"""

from django.contrib import admin
from django.urls import path

from core.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
]

admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
