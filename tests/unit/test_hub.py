"""Tests for ConnectionHub rooms and fan-out with fake websockets."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

from src.hs_chat.realtime.hub import ConnectionHub, chat_room, user_room
from src.hs_chat.realtime.presence import PresenceTracker
from src.hs_gateway.auth.identity import ClientIdentity, ProviderIdentity

CLIENT = ClientIdentity(user_id="client-1")
PROVIDER = ProviderIdentity(user_id="user-p1", provider_id="prov-1")


def _fake_ws(fail: bool = False) -> MagicMock:
    ws = MagicMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("closed") if fail else None)
    ws.close = AsyncMock()
    return ws


def _events(ws: MagicMock) -> list[str]:
    return [c.args[0]["event"] for c in ws.send_json.call_args_list]


def _make_hub() -> tuple[ConnectionHub, PresenceTracker]:
    presence = PresenceTracker()
    hub = ConnectionHub(presence)
    presence.bind(hub.broadcast_all)
    return hub, presence


class TestConnectionHub:
    async def test_connect_joins_user_room_and_marks_online(self) -> None:
        hub, presence = _make_hub()
        session = await hub.connect(_fake_ws(), CLIENT)

        assert user_room("client-1") in session.rooms
        assert presence.is_online("client-1")
        assert hub.active_sessions == 1

    async def test_online_edge_broadcast_to_everyone(self) -> None:
        hub, _ = _make_hub()
        first = _fake_ws()
        await hub.connect(first, CLIENT)
        await hub.connect(_fake_ws(), PROVIDER)
        assert _events(first).count("user_connected") == 2

    async def test_disconnect_leaves_rooms_and_presence(self) -> None:
        hub, presence = _make_hub()
        session = await hub.connect(_fake_ws(), CLIENT)
        hub.join(session.id, chat_room("conv-1"))

        await hub.disconnect(session.id)

        assert hub.active_sessions == 0
        assert not presence.is_online("client-1")
        assert not hub.room_has_user(chat_room("conv-1"), "client-1")
        assert hub.get_stats()["rooms"] == 0

    async def test_send_to_user_reaches_every_session(self) -> None:
        hub, _ = _make_hub()
        tab1, tab2 = _fake_ws(), _fake_ws()
        await hub.connect(tab1, CLIENT)
        await hub.connect(tab2, CLIENT)

        reached = await hub.send_to_user("client-1", "ping", {"n": 1})

        assert reached == 2
        tab2.send_json.assert_awaited_with({"event": "ping", "data": {"n": 1}})

    async def test_emit_to_room_only_members(self) -> None:
        hub, _ = _make_hub()
        member, other = _fake_ws(), _fake_ws()
        s1 = await hub.connect(member, CLIENT)
        await hub.connect(other, PROVIDER)
        hub.join(s1.id, chat_room("conv-1"))

        assert await hub.emit_to_room(chat_room("conv-1"), "receive_message", {}) == 1
        assert "receive_message" in _events(member)
        assert "receive_message" not in _events(other)

    async def test_leave_room(self) -> None:
        hub, _ = _make_hub()
        session = await hub.connect(_fake_ws(), CLIENT)
        hub.join(session.id, chat_room("conv-1"))
        hub.leave(session.id, chat_room("conv-1"))
        assert not hub.room_has_user(chat_room("conv-1"), "client-1")

    async def test_failed_send_drops_session(self) -> None:
        hub, presence = _make_hub()
        dead = _fake_ws()
        session = await hub.connect(dead, CLIENT)
        dead.send_json.side_effect = RuntimeError("closed")

        assert await hub.send_to_user("client-1", "ping") == 0
        assert hub.get_session(session.id) is None
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert not presence.is_online("client-1")

    async def test_send_to_unknown_session(self) -> None:
        hub, _ = _make_hub()
        assert await hub.send_to_session("nope", "ping") is False

    async def test_close_all(self) -> None:
        hub, presence = _make_hub()
        ws = _fake_ws()
        await hub.connect(ws, CLIENT)
        await hub.close_all()
        ws.close.assert_awaited_once_with(code=1001)
        assert hub.active_sessions == 0
        assert presence.online_users == 0
