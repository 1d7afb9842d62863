"""
One live WebSocket connection and its two pumps.

The read pump hands every inbound frame to the hub. The write pump owns the
transport for sending and is the only coroutine that writes to it. It drains
the outbound queue and sends a heartbeat every ping interval.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from app.infra.logging_config import get_logger
from app.schemas.frame import PING_FRAME

if TYPE_CHECKING:
    from app.core.hub import Hub

logger = get_logger("client")

_CLOSE = object()


class Client:
    def __init__(
        self,
        hub: "Hub",
        websocket: WebSocket,
        user_id: UUID,
        queue_size: int = 256,
        ping_interval: float = 30.0,
        pong_timeout: float = 75.0,
        write_timeout: float = 10.0,
    ) -> None:
        self.id = uuid4()
        self.hub = hub
        self.websocket = websocket
        self.user_id = user_id
        self.ping_interval = ping_interval
        self.pong_timeout = pong_timeout
        self.write_timeout = write_timeout
        self.last_seen = time.monotonic()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self._transport_closed = False

    def __repr__(self) -> str:
        return f"<Client user={self.user_id} conn={self.id}>"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def mark_alive(self) -> None:
        self.last_seen = time.monotonic()

    def idle_seconds(self) -> float:
        return time.monotonic() - self.last_seen

    def enqueue(self, frame: str) -> bool:
        """Queue a serialized frame. False if the queue is full or closed."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> bool:
        """
        Close the outbound queue. Frames already queued are still written
        unless the queue is full, in which case they are dropped.

        Returns True only for the call that actually closed it.
        """
        if self._closed:
            return False
        self._closed = True
        if self._queue.full():
            while not self._queue.empty():
                self._queue.get_nowait()
        self._queue.put_nowait(_CLOSE)
        return True

    async def read_pump(self) -> None:
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(
                        message.get("code", 1000), message.get("reason")
                    )
                self.mark_alive()
                raw = message.get("text")
                if raw is None:
                    logger.warning("%r sent a binary frame, ignoring", self)
                    continue
                await self.hub.dispatch(self, raw)
        except WebSocketDisconnect as e:
            logger.debug("%r disconnected (code=%s)", self, e.code)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%r read failed: %s", self, e)
        finally:
            self.hub.unregister(self)

    async def write_pump(self) -> None:
        next_ping = time.monotonic() + self.ping_interval
        try:
            while True:
                if self.idle_seconds() > self.pong_timeout:
                    logger.info("%r missed heartbeat, dropping", self)
                    return
                # pings go out on a fixed schedule, however busy the queue is
                wait = next_ping - time.monotonic()
                if wait <= 0:
                    frame = PING_FRAME
                else:
                    try:
                        frame = await asyncio.wait_for(self._queue.get(), timeout=wait)
                    except asyncio.TimeoutError:
                        frame = PING_FRAME
                if frame is _CLOSE:
                    return
                if frame is PING_FRAME:
                    next_ping = time.monotonic() + self.ping_interval
                await asyncio.wait_for(
                    self.websocket.send_text(frame), timeout=self.write_timeout
                )
        except asyncio.TimeoutError:
            logger.warning("%r write timed out", self)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%r write failed: %s", self, e)
        finally:
            self.hub.unregister(self)
            await self.close_transport()

    async def run(self, grace_period: float = 1.0) -> None:
        """Run both pumps until one exits, then stop the other."""
        reader = asyncio.create_task(self.read_pump(), name=f"read:{self.id}")
        writer = asyncio.create_task(self.write_pump(), name=f"write:{self.id}")
        tasks = {reader, writer}
        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            if pending:
                await asyncio.wait(pending, timeout=grace_period)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.hub.unregister(self)
            await self.close_transport()

    async def close_transport(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self._transport_closed:
            return
        self._transport_closed = True
        if (
            self.websocket.application_state == WebSocketState.DISCONNECTED
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            logger.debug("%r transport already closed: %s", self, e)
