# Import celery app first
from app.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from app.infra.logging_config import LoggingConfig
from app.tasks.reconcile_event_buffer_task import reconcile_event_buffer_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "reconcile_event_buffer_task",
]
