"""Tests for ChatProtocol frame handling, fan-out and deferred delivery."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from src.hs_chat.application.service import PostedMessage
from src.hs_chat.domain.models import Message
from src.hs_chat.realtime.hub import ConnectionHub, chat_room
from src.hs_chat.realtime.presence import PresenceTracker
from src.hs_chat.realtime.protocol import ChatProtocol
from src.hs_common.errors import ConversationAccessDeniedError
from src.hs_gateway.auth.identity import ClientIdentity, ProviderIdentity

CLIENT = ClientIdentity(user_id="client-1")
PROVIDER = ProviderIdentity(user_id="user-p1", provider_id="prov-1")


@asynccontextmanager
async def _fake_scope() -> AsyncIterator[MagicMock]:
    yield MagicMock()


def _fake_ws() -> MagicMock:
    ws = MagicMock()
    ws.send_json = AsyncMock()
    ws.close = AsyncMock()
    return ws


def _frames(ws: MagicMock, event: str) -> list[Any]:
    return [
        c.args[0]["data"] for c in ws.send_json.call_args_list if c.args[0]["event"] == event
    ]


def _make_message(**kwargs: Any) -> Message:
    defaults: dict[str, Any] = dict(
        id="msg-1", conversation_id="conv-1", sender_id="client-1", content="hello"
    )
    defaults.update(kwargs)
    return Message(**defaults)


def _make_protocol() -> tuple[ChatProtocol, ConnectionHub, AsyncMock]:
    presence = PresenceTracker()
    hub = ConnectionHub(presence)
    presence.bind(hub.broadcast_all)
    service = AsyncMock()
    service.post_message.return_value = PostedMessage(
        message=_make_message(), sender_id="client-1", recipient_user_id="user-p1"
    )
    service.confirm_delivery.return_value = True
    protocol = ChatProtocol(
        hub, presence, service=service, session_factory=_fake_scope, delivery_delay=0
    )
    return protocol, hub, service


class TestFrameHandling:
    async def test_join_room_authorizes_and_acks(self) -> None:
        protocol, hub, service = _make_protocol()
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)

        await protocol.handle_frame(session, {"event": "join_room", "data": "conv-1"})

        service.authorize.assert_awaited_once()
        assert hub.room_has_user(chat_room("conv-1"), "client-1")
        assert _frames(ws, "joined_room") == [{"conversation_id": "conv-1"}]

    async def test_join_room_denied_sends_error_frame(self) -> None:
        protocol, hub, service = _make_protocol()
        service.authorize.side_effect = ConversationAccessDeniedError("conv-1")
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)

        await protocol.handle_frame(
            session, {"event": "join_room", "data": {"conversation_id": "conv-1"}}
        )

        errors = _frames(ws, "error")
        assert errors[0]["code"] == 3003
        assert errors[0]["kind"] == "FORBIDDEN"
        assert not hub.room_has_user(chat_room("conv-1"), "client-1")

    async def test_unknown_event(self) -> None:
        protocol, hub, _ = _make_protocol()
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)
        await protocol.handle_frame(session, {"event": "dance", "data": {}})
        assert _frames(ws, "error")[0]["code"] == 3006

    async def test_missing_field(self) -> None:
        protocol, hub, _ = _make_protocol()
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)
        await protocol.handle_frame(session, {"event": "mark_message_as_read", "data": {}})
        assert "message_id is required" in _frames(ws, "error")[0]["message"]

    async def test_unexpected_error_becomes_internal_error_frame(self) -> None:
        protocol, hub, service = _make_protocol()
        service.authorize.side_effect = RuntimeError("db down")
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)
        await protocol.handle_frame(session, {"event": "join_room", "data": "conv-1"})
        assert _frames(ws, "error")[0]["code"] == 9002

    async def test_check_user_status(self) -> None:
        protocol, hub, _ = _make_protocol()
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)
        await hub.connect(_fake_ws(), PROVIDER)

        await protocol.handle_frame(session, {"event": "check_user_status", "data": "user-p1"})
        await protocol.handle_frame(session, {"event": "check_user_status", "data": "ghost"})

        assert _frames(ws, "user_status") == [
            {"user_id": "user-p1", "is_online": True},
            {"user_id": "ghost", "is_online": False},
        ]


class TestSendMessage:
    async def test_recipient_in_room_gets_message_and_delivery_follows(self) -> None:
        protocol, hub, service = _make_protocol()
        sender_ws, recipient_ws = _fake_ws(), _fake_ws()
        sender = await hub.connect(sender_ws, CLIENT)
        recipient = await hub.connect(recipient_ws, PROVIDER)
        hub.join(sender.id, chat_room("conv-1"))
        hub.join(recipient.id, chat_room("conv-1"))

        await protocol.handle_frame(
            sender,
            {"event": "send_message", "data": {"conversation_id": "conv-1", "content": "hello"}},
        )
        await protocol.drain()

        assert _frames(recipient_ws, "receive_message")[0]["id"] == "msg-1"
        assert _frames(recipient_ws, "new_message_notification") == []
        service.confirm_delivery.assert_awaited_once()
        assert _frames(sender_ws, "message_status_update") == [
            {"message_id": "msg-1", "conversation_id": "conv-1", "delivery_status": "delivered"}
        ]

    async def test_online_recipient_outside_room_gets_notification(self) -> None:
        protocol, hub, service = _make_protocol()
        recipient_ws = _fake_ws()
        await hub.connect(recipient_ws, PROVIDER)

        await protocol.send_message(CLIENT, "conv-1", "hello")

        assert len(_frames(recipient_ws, "new_message_notification")) == 1
        assert protocol.pending_deliveries == 0
        service.confirm_delivery.assert_not_awaited()

    async def test_offline_recipient_gets_nothing(self) -> None:
        protocol, _, service = _make_protocol()
        resp = await protocol.send_message(CLIENT, "conv-1", "hello")
        assert resp.delivery_status == "sent"
        service.confirm_delivery.assert_not_awaited()

    async def test_no_status_update_when_already_delivered(self) -> None:
        protocol, hub, service = _make_protocol()
        service.confirm_delivery.return_value = False
        sender_ws, recipient_ws = _fake_ws(), _fake_ws()
        sender = await hub.connect(sender_ws, CLIENT)
        recipient = await hub.connect(recipient_ws, PROVIDER)
        hub.join(sender.id, chat_room("conv-1"))
        hub.join(recipient.id, chat_room("conv-1"))

        await protocol.send_message(CLIENT, "conv-1", "hello")
        await protocol.drain()

        assert _frames(sender_ws, "message_status_update") == []

    async def test_send_message_requires_object_payload(self) -> None:
        protocol, hub, _ = _make_protocol()
        ws = _fake_ws()
        session = await hub.connect(ws, CLIENT)
        await protocol.handle_frame(session, {"event": "send_message", "data": "conv-1"})
        assert _frames(ws, "error")[0]["code"] == 3006

    async def test_shutdown_cancels_pending_deliveries(self) -> None:
        protocol, hub, service = _make_protocol()
        protocol._delivery_delay = 60
        sender = await hub.connect(_fake_ws(), CLIENT)
        recipient = await hub.connect(_fake_ws(), PROVIDER)
        hub.join(sender.id, chat_room("conv-1"))
        hub.join(recipient.id, chat_room("conv-1"))

        await protocol.send_message(CLIENT, "conv-1", "hello")
        assert protocol.pending_deliveries == 1
        await protocol.shutdown()

        service.confirm_delivery.assert_not_awaited()


class TestReceipts:
    async def test_mark_read_notifies_sender(self) -> None:
        protocol, hub, service = _make_protocol()
        service.mark_read.return_value = _make_message(is_read=True, delivery_status="read")
        sender_ws, reader_ws = _fake_ws(), _fake_ws()
        await hub.connect(sender_ws, CLIENT)
        reader = await hub.connect(reader_ws, PROVIDER)

        await protocol.handle_frame(reader, {"event": "mark_message_as_read", "data": "msg-1"})

        assert _frames(sender_ws, "message_status_update") == [
            {"message_id": "msg-1", "conversation_id": "conv-1", "delivery_status": "read"}
        ]

    async def test_mark_delivered_noop_sends_nothing(self) -> None:
        protocol, hub, service = _make_protocol()
        service.mark_delivered.return_value = None
        sender_ws = _fake_ws()
        await hub.connect(sender_ws, CLIENT)
        reader = await hub.connect(_fake_ws(), PROVIDER)

        await protocol.handle_frame(
            reader, {"event": "mark_message_as_delivered", "data": {"message_id": "msg-1"}}
        )

        assert _frames(sender_ws, "message_status_update") == []

    async def test_bulk_read_notifies_each_sender(self) -> None:
        protocol, hub, service = _make_protocol()
        service.mark_conversation_read.return_value = (3, ["user-p1"])
        provider_ws = _fake_ws()
        await hub.connect(provider_ws, PROVIDER)

        updated = await protocol.mark_conversation_read(CLIENT, "conv-1")

        assert updated == 3
        assert _frames(provider_ws, "message_status_update") == [
            {"conversation_id": "conv-1", "delivery_status": "read"}
        ]
