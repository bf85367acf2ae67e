# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Import Celery app to ensure it's loaded when Django starts, so shared_task
# decorators bind to it and beat can discover chat.tasks.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
