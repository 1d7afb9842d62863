"""Celery task for the event buffer sweep."""

from __future__ import annotations

from celery.exceptions import SoftTimeLimitExceeded

from app.commands.reconcile_event_buffer_command import ReconcileEventBufferCommand
from app.config import get_settings
from app.core.exceptions import EventStoreError
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.services.event_buffer import RedisEventBuffer
from app.services.event_service import SessionScopedEventStore

logger = get_logger("event_sweep_task")

_settings = get_settings()


@celery_app.task(
    name="app.tasks.reconcile_event_buffer_task.reconcile_event_buffer_task",
    soft_time_limit=_settings.event_sweep_timeout_seconds,
    time_limit=_settings.event_sweep_timeout_seconds + 10,
)
def reconcile_event_buffer_task(limit: int | None = None) -> dict:
    """
    Move one batch of buffered events into PostgreSQL.
    Failures are logged; the next scheduled run retries what is left.
    """
    batch_size = limit or get_settings().event_sweep_batch_size
    command = ReconcileEventBufferCommand(
        RedisEventBuffer.from_settings(), SessionScopedEventStore()
    )
    try:
        result = command.execute(batch_size)
    except SoftTimeLimitExceeded:
        logger.warning("Event sweep hit its time limit; remaining events stay buffered")
        return {"fetched": 0, "migrated": 0, "failed": 0, "timed_out": True}
    except EventStoreError as e:
        logger.error("Event sweep failed: %s", e)
        return {"fetched": 0, "migrated": 0, "failed": 0, "error": e.message}
    return {"fetched": result.fetched, "migrated": result.migrated, "failed": result.failed}
