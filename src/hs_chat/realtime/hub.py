"""ConnectionHub: live WebSocket sessions and their room subscriptions.

Rooms:
- chat:{conversation_id}: sessions that joined a conversation
- user:{user_id}: personal channel, every session of that user

A user may hold several sessions at once (tabs, devices). A session whose
send fails is dropped from every room and unregistered from presence.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from src.hs_chat.realtime.presence import PresenceTracker
from src.hs_common.datetime_utils import utc_now
from src.hs_common.response import ws_frame
from src.hs_gateway.auth.identity import Identity

logger = logging.getLogger("hs.realtime")


def chat_room(conversation_id: str) -> str:
    return f"chat:{conversation_id}"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


@dataclass
class Session:
    id: str
    websocket: WebSocket
    identity: Identity
    connected_at: datetime = field(default_factory=utc_now)
    rooms: set[str] = field(default_factory=set)

    @property
    def user_id(self) -> str:
        return self.identity.user_id


class ConnectionHub:
    """Fan-out over live sessions. Also the app's RealtimeNotifier."""

    def __init__(self, presence: PresenceTracker) -> None:
        self._presence = presence
        self._sessions: dict[str, Session] = {}
        self._rooms: dict[str, set[str]] = {}
        self._pending_drops: set[asyncio.Task[None]] = set()
        self._total_sent = 0

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket, identity: Identity) -> Session:
        """Track an accepted socket, join its personal room and mark the user online."""
        session = Session(id=uuid.uuid4().hex, websocket=websocket, identity=identity)
        self._sessions[session.id] = session
        self.join(session.id, user_room(identity.user_id))
        logger.info("Session %s connected for user %s", session.id, identity.user_id)
        await self._presence.register_session(identity.user_id, session.id)
        return session

    async def disconnect(self, session_id: str) -> None:
        session = self._detach(session_id)
        if session is None:
            return
        logger.info("Session %s disconnected for user %s", session.id, session.user_id)
        await self._presence.unregister_session(session.user_id, session.id)

    async def close_all(self, code: int = 1001) -> None:
        for session_id in list(self._sessions):
            session = self._sessions.get(session_id)
            if session is None:
                continue
            try:
                await session.websocket.close(code=code)
            except Exception:
                logger.debug("Close failed for session %s", session_id)
            await self.disconnect(session_id)
        for task in list(self._pending_drops):
            task.cancel()
        self._presence.clear()

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def join(self, session_id: str, room: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.rooms.add(room)
        self._rooms.setdefault(room, set()).add(session_id)

    def leave(self, session_id: str, room: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(session_id)
            if not members:
                del self._rooms[room]

    def room_has_user(self, room: str, user_id: str) -> bool:
        for session_id in self._rooms.get(room, ()):
            session = self._sessions.get(session_id)
            if session is not None and session.user_id == user_id:
                return True
        return False

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def send_to_session(self, session_id: str, event: str, data: Any = None) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        return await self._send_many([session_id], event, data) == 1

    async def emit_to_room(self, room: str, event: str, data: Any = None) -> int:
        return await self._send_many(list(self._rooms.get(room, ())), event, data)

    async def send_to_user(self, user_id: str, event: str, data: Any = None) -> int:
        return await self.emit_to_room(user_room(user_id), event, data)

    async def broadcast_all(self, event: str, data: Any = None) -> int:
        return await self._send_many(list(self._sessions), event, data)

    async def _send_many(self, session_ids: list[str], event: str, data: Any) -> int:
        frame = jsonable_encoder(ws_frame(event, data))
        sent = 0
        failed: list[str] = []
        for session_id in session_ids:
            session = self._sessions.get(session_id)
            if session is None:
                continue
            try:
                await session.websocket.send_json(frame)
                sent += 1
            except Exception:
                failed.append(session_id)
        self._total_sent += sent
        for session_id in failed:
            self._drop(session_id)
        return sent

    def _drop(self, session_id: str) -> None:
        """Detach a dead session now; unregister presence in the background.

        Presence may be broadcasting under a user lock when a send fails, so
        the unregistration cannot be awaited inline.
        """
        session = self._detach(session_id)
        if session is None:
            return
        logger.warning("Dropping session %s of user %s after failed send", session.id, session.user_id)
        task = asyncio.create_task(
            self._presence.unregister_session(session.user_id, session.id)
        )
        self._pending_drops.add(task)
        task.add_done_callback(self._pending_drops.discard)

    def _detach(self, session_id: str) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        for room in list(session.rooms):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(session_id)
                if not members:
                    del self._rooms[room]
        session.rooms.clear()
        return session

    def get_stats(self) -> dict[str, int]:
        return {
            "active_sessions": len(self._sessions),
            "rooms": len(self._rooms),
            "online_users": self._presence.online_users,
            "total_messages_sent": self._total_sent,
        }
