"""Realtime push contract used by application services.

Services push to a user's personal channel through this Protocol so they do
not depend on the WebSocket layer. Delivery is best effort: a user without a
live session simply receives nothing.
"""
from typing import Any, Protocol


class RealtimeNotifier(Protocol):
    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        """Push to every live session of `user_id`; return the number reached."""
        ...


class NullNotifier:
    """Notifier for contexts without a realtime hub (scripts, tests)."""

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        return 0
