"""PresenceTracker: which users currently hold at least one live session.

Process-local and in-memory: rebuilt from nothing on restart. Mutations for
one user are serialized by a per-user asyncio.Lock, held across the
online/offline broadcast so a user's edges are announced in order. Different
users never contend. A lock lives only while some call holds or awaits it.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger("hs.realtime")

Broadcast = Callable[[str, dict[str, Any]], Awaitable[Any]]


class PresenceTracker:
    def __init__(self, broadcast: Broadcast | None = None) -> None:
        self._sessions: dict[str, set[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._broadcast = broadcast

    def bind(self, broadcast: Broadcast) -> None:
        """Attach the fan-out used for user_connected / user_disconnected."""
        self._broadcast = broadcast

    def is_online(self, user_id: str) -> bool:
        return user_id in self._sessions

    def session_count(self, user_id: str) -> int:
        return len(self._sessions.get(user_id, ()))

    @property
    def online_users(self) -> int:
        return len(self._sessions)

    async def register_session(self, user_id: str, session_id: str) -> bool:
        """Add a session. Returns True when this made the user come online."""
        async with self._user_lock(user_id):
            sessions = self._sessions.setdefault(user_id, set())
            first = not sessions
            sessions.add(session_id)
            if first:
                logger.info("User %s online", user_id)
                await self._emit("user_connected", user_id)
        return first

    async def unregister_session(self, user_id: str, session_id: str) -> bool:
        """Remove a session. Returns True when this made the user go offline."""
        async with self._user_lock(user_id):
            sessions = self._sessions.get(user_id)
            if sessions is None:
                return False
            sessions.discard(session_id)
            last = not sessions
            if last:
                del self._sessions[user_id]
                logger.info("User %s offline", user_id)
                await self._emit("user_disconnected", user_id)
        return last

    def clear(self) -> None:
        self._sessions.clear()

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def _emit(self, event: str, user_id: str) -> None:
        if self._broadcast is None:
            return
        try:
            await self._broadcast(event, {"user_id": user_id})
        except Exception:
            logger.exception("Presence broadcast %s for user %s failed", event, user_id)
