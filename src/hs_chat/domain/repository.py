"""Conversation/Message repository Protocols."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_chat.domain.models import Conversation, ConversationSummary, Message


class ConversationRepositoryProtocol(Protocol):
    async def get_by_id(self, conversation_id: str, db: AsyncSession) -> Conversation | None: ...

    async def find(
        self, client_id: str, provider_id: str, order_id: str | None, db: AsyncSession
    ) -> Conversation | None: ...

    async def find_or_create(
        self, client_id: str, provider_id: str, order_id: str | None, db: AsyncSession
    ) -> tuple[Conversation, bool]: ...

    async def touch(self, conversation_id: str, db: AsyncSession) -> None: ...

    async def list_for_participant(
        self, user_id: str, provider_id: str | None, db: AsyncSession
    ) -> list[ConversationSummary]: ...


class MessageRepositoryProtocol(Protocol):
    async def save(self, message: Message, db: AsyncSession) -> Message: ...

    async def get_by_id(self, message_id: str, db: AsyncSession) -> Message | None: ...

    async def list_page(
        self, conversation_id: str, limit: int, offset: int, db: AsyncSession
    ) -> tuple[list[Message], int]: ...

    async def advance_to_delivered(self, message_id: str, db: AsyncSession) -> bool: ...

    async def mark_read(self, message_id: str, db: AsyncSession) -> None: ...

    async def mark_conversation_read(
        self, conversation_id: str, reader_id: str, db: AsyncSession
    ) -> list[str]: ...

    async def count_unread_for_participant(
        self, user_id: str, provider_id: str | None, db: AsyncSession
    ) -> int: ...
