"""
Celery tasks for background processing.

Tasks are defined here and imported by both the API (to enqueue) and
the worker (to execute).
"""
from celery import Celery
from core.config import settings

# Create Celery app instance
celery_app = Celery(
    "waterman",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A full scrape with every retry exhausted can take a while.
    task_time_limit=6 * 60 * 60,
    task_soft_time_limit=6 * 60 * 60 - 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Import tasks to register them
from . import scoring_tasks  # noqa: E402

__all__ = ["celery_app"]
