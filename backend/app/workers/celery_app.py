"""
Celery Application — Background task processing for the proposal service.
Handles outbound notifications so API requests never wait on third-party
webhooks.
"""
from celery import Celery

from app import config

celery_app = Celery(
    "wellness",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["app.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=60,
    task_time_limit=120,
    result_expires=3600,        # Results expire after 1 hour
)
