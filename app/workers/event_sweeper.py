"""In-process sweeper: runs the event buffer sweep on a fixed interval."""

from __future__ import annotations

import asyncio
from typing import Optional

from app.commands.reconcile_event_buffer_command import (
    ReconcileEventBufferCommand,
    ReconcileResult,
)
from app.infra.logging_config import get_logger

logger = get_logger("event_sweeper")


def _consume_result(future: asyncio.Future) -> None:
    # a tick abandoned on timeout may still fail later
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Abandoned event sweep finished with %r", future.exception())


class EventSweeper:
    """
    Background task owned by the API process (EVENT_SWEEP_BACKEND=inline).

    Each tick runs in a worker thread and is bounded by ``timeout``; a tick
    that overruns is abandoned, not interrupted. A tick that fails or times out is
    logged and the next one tries again; the loop only ends on stop().
    """

    def __init__(
        self,
        command: ReconcileEventBufferCommand,
        interval: float = 30.0,
        batch_size: int = 500,
        timeout: float = 20.0,
    ) -> None:
        self.command = command
        self.interval = interval
        self.batch_size = batch_size
        self.timeout = timeout
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="event-sweeper")
        logger.info(
            "Event sweeper started (every %.0fs, batch %d)", self.interval, self.batch_size
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def tick(self) -> Optional[ReconcileResult]:
        if self._inflight is not None and not self._inflight.done():
            logger.warning("Previous event sweep still running, skipping tick")
            return None
        self._inflight = asyncio.ensure_future(
            asyncio.to_thread(self.command.execute, self.batch_size)
        )
        self._inflight.add_done_callback(_consume_result)
        try:
            return await asyncio.wait_for(asyncio.shield(self._inflight), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Event sweep exceeded %.0fs, retrying next tick", self.timeout)
        except Exception:
            logger.exception("Event sweep failed, retrying next tick")
        return None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()
