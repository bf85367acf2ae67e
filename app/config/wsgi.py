"""
WSGI config for the realtime chat backend.

Only the infrastructure HTTP endpoints work under WSGI; WebSockets need
the ASGI application served by Uvicorn (see config.asgi).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
