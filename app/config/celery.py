"""
Celery configuration for the realtime chat backend.

Celery runs the periodic typing sweep (see chat.tasks and
CELERY_BEAT_SCHEDULE in settings). Tasks are auto-discovered from all
installed Django apps.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
