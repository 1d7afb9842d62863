"""
The hub: registry of live connections and router for inbound frames.

A single coordinator task owns the ``user_id -> Client`` map. Registration,
removal, inbound frames and domain broadcasts are all submitted as commands to
one FIFO queue and handled in order, so per-connection ordering holds and the
map is never mutated concurrently. Blocking store and directory calls run in
the threadpool; delivery itself happens back on the event loop.

``deliver_event`` is the one entry point that bypasses the queue. It runs on
the loop thread and does not await between looking a client up and acting on
it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.core.client import Client
from app.core.contracts import DurableEventStore, EventBuffer, GroupDirectory, UserDirectory
from app.core.exceptions import EventStoreError, RecipientResolutionError
from app.infra.logging_config import get_logger
from app.schemas.event import (
    AckStatus,
    Event,
    EventType,
    MessageAckPayload,
    MessageSentPayload,
    utcnow,
)
from app.schemas.frame import EventAckRequest, Frame, InboundFrameType, MessageSentRequest
from app.services.event_inbox_service import EventInboxService

logger = get_logger("hub")

RateLimiter = Callable[[UUID], bool]


@dataclass
class _Register:
    client: Client


@dataclass
class _Unregister:
    client: Client


@dataclass
class _Dispatch:
    client: Client
    raw: str
    done: Optional[asyncio.Future] = None


@dataclass
class _Broadcast:
    event: Event


@dataclass
class SendOutcome:
    """Result of persisting one chat message for all of its recipients."""

    message_id: UUID
    address: UUID
    delivered: List[Event] = field(default_factory=list)
    failed_recipient_ids: List[UUID] = field(default_factory=list)
    status: AckStatus = AckStatus.SENT


class Hub:
    def __init__(
        self,
        buffer: EventBuffer,
        store: DurableEventStore,
        users: UserDirectory,
        groups: GroupDirectory,
        message_max_length: int = 200,
        replay_on_connect: bool = True,
        replay_limit: int = 200,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._buffer = buffer
        self._users = users
        self._groups = groups
        self.inbox = EventInboxService(buffer, store)
        self.message_max_length = message_max_length
        self.replay_on_connect = replay_on_connect
        self.replay_limit = replay_limit
        self.rate_limiter = rate_limiter

        self._clients: Dict[UUID, Client] = {}
        self._commands: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._commands = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="hub")
        logger.info("Hub started")

    async def stop(self) -> None:
        """Stop the coordinator and close every connection."""
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        while self._commands is not None and not self._commands.empty():
            command = self._commands.get_nowait()
            self._commands.task_done()
            if isinstance(command, _Dispatch) and command.done and not command.done.done():
                command.done.cancel()
        for client in list(self._clients.values()):
            client.close()
        self._clients.clear()
        logger.info("Hub stopped")

    async def drain(self) -> None:
        """Wait until every command submitted so far has been handled."""
        if self._commands is not None:
            await self._commands.join()

    # ------------------------------------------------------------------
    # registry views
    # ------------------------------------------------------------------

    @property
    def online_count(self) -> int:
        return len(self._clients)

    def is_online(self, user_id: UUID) -> bool:
        return user_id in self._clients

    # ------------------------------------------------------------------
    # command submission (safe from the loop and from worker threads)
    # ------------------------------------------------------------------

    def register(self, client: Client) -> None:
        self._submit(_Register(client))

    def unregister(self, client: Client) -> None:
        if not self.running:
            client.close()
            return
        self._submit(_Unregister(client))

    def dispatch(self, client: Client, raw: str) -> asyncio.Future:
        """
        Queue an inbound frame. The returned future resolves once the frame
        has been handled; the read pump awaits it before reading the next one.
        """
        done = self._loop.create_future() if self._loop else None
        self._submit(_Dispatch(client, raw, done))
        return done

    def broadcast_event(self, event: Event) -> None:
        """Deliver a domain event if its recipient is online, otherwise buffer it."""
        self._submit(_Broadcast(event))

    def _submit(self, command: Any) -> None:
        if not self.running:
            raise RuntimeError("hub is not running")
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            self._commands.put_nowait(command)
        else:
            self._loop.call_soon_threadsafe(self._commands.put_nowait, command)

    # ------------------------------------------------------------------
    # delivery
    # ------------------------------------------------------------------

    def deliver_event(self, event: Event) -> bool:
        """
        Enqueue ``event`` on its recipient's connection. Never touches the
        buffer. A recipient whose queue is full is disconnected.
        """
        client = self._clients.get(event.recipient_id)
        if client is None:
            return False
        if client.enqueue(event.to_wire_json()):
            return True
        logger.warning(
            "Outbound queue full for user %s, dropping connection", event.recipient_id
        )
        self._remove(client)
        return False

    # ------------------------------------------------------------------
    # coordinator
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            command = await self._commands.get()
            try:
                await self._handle(command)
            except Exception:
                logger.exception("Hub command %s failed", type(command).__name__)
            finally:
                if isinstance(command, _Dispatch) and command.done and not command.done.done():
                    command.done.set_result(None)
                self._commands.task_done()

    async def _handle(self, command: Any) -> None:
        if isinstance(command, _Register):
            await self._register(command.client)
        elif isinstance(command, _Unregister):
            self._remove(command.client)
        elif isinstance(command, _Dispatch):
            await self._dispatch(command.client, command.raw)
        elif isinstance(command, _Broadcast):
            await self._broadcast(command.event)
        else:
            logger.error("Unknown hub command %r", command)

    async def _register(self, client: Client) -> None:
        previous = self._clients.get(client.user_id)
        if previous is client:
            return
        self._clients[client.user_id] = client
        if previous is not None:
            logger.info("Replacing connection for user %s", client.user_id)
            previous.close()
        logger.info(
            "User %s connected (%d online)", client.user_id, len(self._clients)
        )
        if self.replay_on_connect:
            await self._replay(client)

    def _remove(self, client: Client) -> None:
        if self._clients.get(client.user_id) is client:
            del self._clients[client.user_id]
            logger.info(
                "User %s disconnected (%d online)", client.user_id, len(self._clients)
            )
        client.close()

    async def _replay(self, client: Client) -> None:
        try:
            events = await run_in_threadpool(
                self.inbox.fetch_undelivered, client.user_id, None, self.replay_limit
            )
        except EventStoreError as e:
            logger.warning("Replay for user %s failed: %s", client.user_id, e)
            return
        for event in events:
            if not client.enqueue(event.to_wire_json()):
                logger.warning("Replay overflowed queue for user %s", client.user_id)
                self._remove(client)
                return
        if events:
            logger.debug("Replayed %d events to user %s", len(events), client.user_id)

    async def _broadcast(self, event: Event) -> None:
        if self.deliver_event(event):
            return
        try:
            await run_in_threadpool(self._buffer.append, event)
        except EventStoreError as e:
            logger.error(
                "Could not buffer %s event %s for user %s: %s",
                event.type.value,
                event.id,
                event.recipient_id,
                e,
            )

    # ------------------------------------------------------------------
    # inbound frames
    # ------------------------------------------------------------------

    async def _dispatch(self, client: Client, raw: str) -> None:
        if self._clients.get(client.user_id) is not client:
            logger.debug("Ignoring frame from replaced or closed %r", client)
            return
        try:
            frame = Frame.model_validate_json(raw)
        except ValidationError:
            logger.warning("Malformed frame from user %s", client.user_id)
            return
        try:
            frame_type = InboundFrameType(frame.type)
        except ValueError:
            logger.warning("Unknown frame type %r from user %s", frame.type, client.user_id)
            return

        if frame_type == InboundFrameType.MESSAGE_SENT:
            await self._on_message_sent(client, frame.payload)
        elif frame_type == InboundFrameType.EVENT_ACK:
            await self._on_event_ack(client, frame.payload)
        # pong only refreshes last_seen, which the read pump already did

    async def _on_message_sent(self, client: Client, payload: Any) -> None:
        try:
            request = MessageSentRequest.model_validate(payload)
        except ValidationError:
            logger.warning("Invalid message_sent payload from user %s", client.user_id)
            return
        content = request.content.strip()
        if not content:
            logger.warning("Empty message from user %s dropped", client.user_id)
            return
        if len(content) > self.message_max_length:
            logger.warning(
                "Message from user %s exceeds %d characters, dropped",
                client.user_id,
                self.message_max_length,
            )
            return
        if self.rate_limiter is not None:
            allowed = await run_in_threadpool(self.rate_limiter, client.user_id)
            if not allowed:
                logger.warning("User %s is rate limited, message dropped", client.user_id)
                return

        outcome = await run_in_threadpool(
            self.persist_message, client.user_id, request.recipient_id, content
        )
        for event in outcome.delivered:
            self.deliver_event(event)
        self.deliver_event(self._build_ack(client.user_id, outcome))

    async def _on_event_ack(self, client: Client, payload: Any) -> None:
        try:
            request = EventAckRequest.model_validate(payload)
        except ValidationError:
            logger.warning("Invalid event_ack payload from user %s", client.user_id)
            return
        try:
            removed = await run_in_threadpool(
                self.inbox.acknowledge, client.user_id, request.event_ids
            )
        except EventStoreError as e:
            logger.warning("Ack from user %s failed: %s", client.user_id, e)
            return
        logger.debug("User %s acknowledged %d events", client.user_id, removed)

    # ------------------------------------------------------------------
    # message send path (runs in the threadpool)
    # ------------------------------------------------------------------

    def persist_message(self, sender_id: UUID, address: UUID, content: str) -> SendOutcome:
        """
        Resolve recipients and buffer one message_sent event per recipient.

        Recipients whose event could not be buffered are reported as failed
        and are not delivered to directly.
        """
        outcome = SendOutcome(message_id=uuid4(), address=address)
        try:
            recipients = self.resolve_recipients(sender_id, address)
        except RecipientResolutionError as e:
            logger.warning("Message from user %s to %s not sent: %s", sender_id, address, e)
            outcome.status = AckStatus.FAILED
            return outcome

        payload = MessageSentPayload(
            id=outcome.message_id,
            content=content,
            sender_id=sender_id,
            recipient_id=address,
            timestamp=utcnow(),
            **self._sender_details(sender_id),
        )
        for recipient_id in recipients:
            event = Event.create(EventType.MESSAGE_SENT, payload, recipient_id, sender_id)
            try:
                self._buffer.append(event)
            except EventStoreError as e:
                logger.error(
                    "Could not persist message %s for user %s: %s",
                    outcome.message_id,
                    recipient_id,
                    e,
                )
                outcome.failed_recipient_ids.append(recipient_id)
                continue
            outcome.delivered.append(event)

        if outcome.failed_recipient_ids:
            outcome.status = AckStatus.PARTIAL if outcome.delivered else AckStatus.FAILED
        return outcome

    def resolve_recipients(self, sender_id: UUID, address: UUID) -> List[UUID]:
        """
        A group id expands to its members; anything else is a user id.
        The sender never receives their own message.
        """
        try:
            group = self._groups.get_group(address)
            members = self._groups.list_member_ids(group.id) if group else None
        except Exception as e:
            raise RecipientResolutionError(
                "group lookup failed", details={"address": str(address)}
            ) from e
        if members is None:
            return [] if address == sender_id else [address]
        if sender_id not in members:
            raise RecipientResolutionError(
                "sender is not a member of the group",
                details={"group_id": str(address)},
            )
        return [m for m in members if m != sender_id]

    def _sender_details(self, sender_id: UUID) -> Dict[str, Any]:
        try:
            profile = self._users.get_profile(sender_id)
        except Exception as e:
            logger.warning("Profile lookup for user %s failed: %s", sender_id, e)
            return {}
        if profile is None:
            return {}
        return {
            "sender_username": profile.username,
            "sender_avatar_url": profile.avatar_url,
        }

    @staticmethod
    def _build_ack(sender_id: UUID, outcome: SendOutcome) -> Event:
        return Event.create(
            EventType.MESSAGE_ACK,
            MessageAckPayload(
                message_id=outcome.message_id,
                recipient_id=outcome.address,
                status=outcome.status,
                failed_recipient_ids=outcome.failed_recipient_ids,
            ),
            recipient_id=sender_id,
        )

