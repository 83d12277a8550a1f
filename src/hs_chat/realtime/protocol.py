"""ChatProtocol: realtime message exchange over the ConnectionHub.

Inbound frames are `{"event": <name>, "data": <payload>}`. A payload may be an
object (`{"conversation_id": "..."}`) or the bare id itself. Caller-facing
failures are answered with an `error` frame on the same socket; the
connection stays open.

When a message is sent while the recipient has a session in the same
conversation room, the message is moved to `delivered` after a short delay
(the client renders first) and the sender is told. These deferred transitions
are tracked tasks: they outlive the sessions that triggered them and are only
cancelled at shutdown.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.hs_chat.application.schemas import MessageResponse
from src.hs_chat.application.service import ChatApplicationService, PostedMessage
from src.hs_chat.domain.models import Message
from src.hs_chat.realtime.hub import ConnectionHub, Session, chat_room
from src.hs_chat.realtime.presence import PresenceTracker
from src.hs_common.database import session_scope
from src.hs_common.enums import DeliveryStatus
from src.hs_common.errors import AppError, InternalError, InvalidPayloadError
from src.hs_common.response import ws_error_payload
from src.hs_gateway.auth.identity import Identity

logger = logging.getLogger("hs.realtime")

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]
Handler = Callable[[Session, Any], Awaitable[None]]


class ChatProtocol:
    def __init__(
        self,
        hub: ConnectionHub,
        presence: PresenceTracker,
        service: ChatApplicationService | None = None,
        session_factory: SessionScope = session_scope,
        delivery_delay: float | None = None,
    ) -> None:
        self._hub = hub
        self._presence = presence
        self._service = service or ChatApplicationService()
        self._session_factory = session_factory
        self._delivery_delay = (
            delivery_delay if delivery_delay is not None else settings.DELIVERY_ACK_DELAY_MS / 1000
        )
        self._deferred: set[asyncio.Task[None]] = set()
        self._handlers: dict[str, Handler] = {
            "join_room": self._on_join_room,
            "leave_room": self._on_leave_room,
            "send_message": self._on_send_message,
            "mark_message_as_delivered": self._on_mark_delivered,
            "mark_message_as_read": self._on_mark_read,
            "check_user_status": self._on_check_user_status,
        }

    @property
    def pending_deliveries(self) -> int:
        return len(self._deferred)

    # ------------------------------------------------------------------
    # Frame dispatch
    # ------------------------------------------------------------------

    async def handle_frame(self, session: Session, frame: Any) -> None:
        """Dispatch one inbound frame. Never raises except on cancellation."""
        try:
            if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                raise InvalidPayloadError("frame must be an object with an 'event' field")
            handler = self._handlers.get(frame["event"])
            if handler is None:
                raise InvalidPayloadError(f"unknown event '{frame['event']}'")
            await handler(session, frame.get("data"))
        except AppError as e:
            await self._hub.send_to_session(session.id, "error", ws_error_payload(e))
        except Exception:
            logger.exception(
                "Unhandled error on event %r from session %s",
                frame.get("event") if isinstance(frame, dict) else None,
                session.id,
            )
            await self._hub.send_to_session(
                session.id, "error", ws_error_payload(InternalError())
            )

    async def _on_join_room(self, session: Session, data: Any) -> None:
        conversation_id = _field(data, "conversation_id")
        async with self._session_factory() as db:
            await self._service.authorize(db, session.identity, conversation_id)
        self._hub.join(session.id, chat_room(conversation_id))
        logger.info("User %s joined conversation %s", session.user_id, conversation_id)
        await self._hub.send_to_session(
            session.id, "joined_room", {"conversation_id": conversation_id}
        )

    async def _on_leave_room(self, session: Session, data: Any) -> None:
        conversation_id = _field(data, "conversation_id")
        self._hub.leave(session.id, chat_room(conversation_id))

    async def _on_send_message(self, session: Session, data: Any) -> None:
        if not isinstance(data, dict):
            raise InvalidPayloadError("send_message expects {conversation_id, content}")
        conversation_id = _field(data, "conversation_id")
        content = data.get("content")
        if content is not None and not isinstance(content, str):
            raise InvalidPayloadError("content must be a string")
        await self.send_message(session.identity, conversation_id, content or "")

    async def _on_mark_delivered(self, session: Session, data: Any) -> None:
        message_id = _field(data, "message_id")
        async with self._session_factory() as db:
            message = await self._service.mark_delivered(db, session.identity, message_id)
        if message is not None:
            await self._notify_status(message.sender_id, message, DeliveryStatus.DELIVERED)

    async def _on_mark_read(self, session: Session, data: Any) -> None:
        message_id = _field(data, "message_id")
        async with self._session_factory() as db:
            message = await self._service.mark_read(db, session.identity, message_id)
        await self._notify_status(message.sender_id, message, DeliveryStatus.READ)

    async def _on_check_user_status(self, session: Session, data: Any) -> None:
        user_id = _field(data, "user_id")
        await self._hub.send_to_session(
            session.id,
            "user_status",
            {"user_id": user_id, "is_online": self._presence.is_online(user_id)},
        )

    # ------------------------------------------------------------------
    # Operations shared with the REST surface
    # ------------------------------------------------------------------

    async def send_message(
        self, identity: Identity, conversation_id: str, content: str
    ) -> MessageResponse:
        async with self._session_factory() as db:
            posted = await self._service.post_message(db, identity, conversation_id, content)
        return await self._fan_out(posted)

    async def mark_conversation_read(self, identity: Identity, conversation_id: str) -> int:
        async with self._session_factory() as db:
            updated, senders = await self._service.mark_conversation_read(
                db, identity, conversation_id
            )
        for sender_id in senders:
            await self._hub.send_to_user(
                sender_id,
                "message_status_update",
                {"conversation_id": conversation_id, "delivery_status": DeliveryStatus.READ.value},
            )
        return updated

    async def _fan_out(self, posted: PostedMessage) -> MessageResponse:
        message = posted.message
        payload = MessageResponse.from_domain(message)
        room = chat_room(message.conversation_id)
        await self._hub.emit_to_room(room, "receive_message", payload)

        recipient = posted.recipient_user_id
        if recipient is None:
            return payload
        if self._hub.room_has_user(room, recipient):
            self._schedule_delivery(message, posted.sender_id)
        elif self._presence.is_online(recipient):
            await self._hub.send_to_user(recipient, "new_message_notification", payload)
        return payload

    # ------------------------------------------------------------------
    # Deferred delivery
    # ------------------------------------------------------------------

    def _schedule_delivery(self, message: Message, sender_id: str) -> None:
        task = asyncio.create_task(
            self._deliver_later(message, sender_id), name=f"deliver-{message.id}"
        )
        self._deferred.add(task)
        task.add_done_callback(self._deferred.discard)

    async def _deliver_later(self, message: Message, sender_id: str) -> None:
        await asyncio.sleep(self._delivery_delay)
        try:
            async with self._session_factory() as db:
                changed = await self._service.confirm_delivery(db, message.id)
            if changed:
                await self._notify_status(sender_id, message, DeliveryStatus.DELIVERED)
        except Exception:
            logger.exception("Deferred delivery update failed for message %s", message.id)

    async def _notify_status(
        self, sender_id: str, message: Message, status: DeliveryStatus
    ) -> None:
        await self._hub.send_to_user(
            sender_id,
            "message_status_update",
            {
                "message_id": message.id,
                "conversation_id": message.conversation_id,
                "delivery_status": status.value,
            },
        )

    async def drain(self) -> None:
        """Wait for every scheduled delivery transition to finish."""
        while self._deferred:
            await asyncio.gather(*list(self._deferred), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._deferred)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Cancelled %d pending delivery updates", len(tasks))


def _field(data: Any, key: str) -> str:
    """Pull `key` from an object payload, or accept the bare value itself."""
    value = data.get(key) if isinstance(data, dict) else data
    if isinstance(value, bool) or not isinstance(value, (str, int)) or value == "":
        raise InvalidPayloadError(f"{key} is required")
    return str(value)
