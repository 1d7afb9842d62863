"""
Celery application for background jobs.

Redis is the broker. When EVENT_SWEEP_BACKEND=celery, beat schedules the
event buffer sweep instead of the in-process sweeper.
"""

from __future__ import annotations

from celery import Celery

from app.config import get_settings


def create_celery_app() -> Celery:
    settings = get_settings()
    broker_url = settings.celery_broker_url or settings.redis_url

    app = Celery("parley", broker=broker_url, include=["app.tasks"])
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_ignore_result=True,
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_hijack_root_logger=False,
        worker_prefetch_multiplier=1,
    )

    if settings.event_sweep_backend == "celery":
        app.conf.beat_schedule = {
            "reconcile-event-buffer": {
                "task": "app.tasks.reconcile_event_buffer_task.reconcile_event_buffer_task",
                "schedule": settings.event_sweep_interval_seconds,
                "options": {"expires": settings.event_sweep_interval_seconds},
            }
        }
    return app


celery_app = create_celery_app()
