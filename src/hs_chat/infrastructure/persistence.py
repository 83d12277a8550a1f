"""Conversation/Message repositories: raw SQL persistence implementation.

Delivery-status updates are conditional UPDATEs so the lifecycle
sent → delivered → read never regresses, whatever order events arrive in.
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_chat.domain.models import Conversation, ConversationSummary, LastMessage, Message

# ---------------------------------------------------------------------------
# SQL: conversations
# ---------------------------------------------------------------------------

_CONVERSATION_COLUMNS = "id, client_id, provider_id, order_id, created_at, updated_at"

_GET_CONVERSATION_SQL = text(f"""
    SELECT {_CONVERSATION_COLUMNS}
    FROM conversations WHERE id = :id
""")

_FIND_CONVERSATION_SQL = text(f"""
    SELECT {_CONVERSATION_COLUMNS}
    FROM conversations
    WHERE client_id = :client_id
      AND provider_id = :provider_id
      AND COALESCE(order_id, '') = COALESCE(CAST(:order_id AS TEXT), '')
""")

# uq_conversations_participants_order makes this exactly-once per (client, provider, order)
_INSERT_CONVERSATION_SQL = text(f"""
    INSERT INTO conversations (client_id, provider_id, order_id)
    VALUES (:client_id, :provider_id, :order_id)
    ON CONFLICT DO NOTHING
    RETURNING {_CONVERSATION_COLUMNS}
""")

_TOUCH_CONVERSATION_SQL = text("""
    UPDATE conversations SET updated_at = NOW() WHERE id = :id
""")

_LIST_FOR_PARTICIPANT_SQL = text("""
    SELECT c.id, c.client_id, c.provider_id, c.order_id, c.created_at, c.updated_at,
           p.user_id AS provider_user_id,
           p.first_name AS provider_first_name,
           p.last_name AS provider_last_name,
           p.avatar_url AS provider_avatar_url,
           lm.content AS last_content,
           lm.sender_id AS last_sender_id,
           lm.created_at AS last_created_at,
           (
               SELECT COUNT(*) FROM messages m
               WHERE m.conversation_id = c.id
                 AND m.sender_id <> :user_id
                 AND m.is_read = FALSE
           ) AS unread_count
    FROM conversations c
    LEFT JOIN providers p ON p.id = c.provider_id
    LEFT JOIN LATERAL (
        SELECT content, sender_id, created_at
        FROM messages
        WHERE conversation_id = c.id
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ) lm ON TRUE
    WHERE c.client_id = :user_id
       OR (CAST(:provider_id AS TEXT) IS NOT NULL AND c.provider_id = CAST(:provider_id AS TEXT))
    ORDER BY c.updated_at DESC, c.id DESC
""")

# ---------------------------------------------------------------------------
# SQL: messages
# ---------------------------------------------------------------------------

_MESSAGE_COLUMNS = "id, conversation_id, sender_id, content, is_read, delivery_status, created_at"

_INSERT_MESSAGE_SQL = text(f"""
    INSERT INTO messages (conversation_id, sender_id, content, is_read, delivery_status)
    VALUES (:conversation_id, :sender_id, :content, :is_read, :delivery_status)
    RETURNING {_MESSAGE_COLUMNS}
""")

_GET_MESSAGE_SQL = text(f"""
    SELECT {_MESSAGE_COLUMNS}
    FROM messages WHERE id = :id
""")

_LIST_MESSAGES_SQL = text(f"""
    SELECT {_MESSAGE_COLUMNS}
    FROM messages
    WHERE conversation_id = :conversation_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_MESSAGES_SQL = text("""
    SELECT COUNT(*) FROM messages WHERE conversation_id = :conversation_id
""")

_ADVANCE_TO_DELIVERED_SQL = text("""
    UPDATE messages SET delivery_status = 'delivered'
    WHERE id = :id AND delivery_status IN ('pending', 'sent')
""")

_MARK_READ_SQL = text("""
    UPDATE messages SET delivery_status = 'read', is_read = TRUE
    WHERE id = :id
""")

_MARK_CONVERSATION_READ_SQL = text("""
    UPDATE messages SET is_read = TRUE, delivery_status = 'read'
    WHERE conversation_id = :conversation_id
      AND sender_id <> :reader_id
      AND is_read = FALSE
    RETURNING sender_id
""")

_COUNT_UNREAD_SQL = text("""
    SELECT COUNT(*)
    FROM messages m
    JOIN conversations c ON c.id = m.conversation_id
    WHERE (
        c.client_id = :user_id
        OR (CAST(:provider_id AS TEXT) IS NOT NULL AND c.provider_id = CAST(:provider_id AS TEXT))
    )
      AND m.sender_id <> :user_id
      AND m.is_read = FALSE
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_conversation(row: Any) -> Conversation:
    return Conversation(
        id=str(row.id),
        client_id=str(row.client_id),
        provider_id=str(row.provider_id),
        order_id=str(row.order_id) if row.order_id is not None else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_message(row: Any) -> Message:
    return Message(
        id=str(row.id),
        conversation_id=str(row.conversation_id),
        sender_id=str(row.sender_id),
        content=row.content,
        is_read=bool(row.is_read),
        delivery_status=row.delivery_status,
        created_at=row.created_at,
    )


def _row_to_summary(row: Any) -> ConversationSummary:
    last_message = None
    if row.last_content is not None:
        last_message = LastMessage(
            content=row.last_content,
            sender_id=str(row.last_sender_id),
            created_at=row.last_created_at,
        )
    return ConversationSummary(
        conversation=_row_to_conversation(row),
        provider_user_id=(
            str(row.provider_user_id) if row.provider_user_id is not None else None
        ),
        provider_first_name=row.provider_first_name,
        provider_last_name=row.provider_last_name,
        provider_avatar_url=row.provider_avatar_url,
        last_message=last_message,
        unread_count=int(row.unread_count),
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class ConversationRepository:
    """Concrete implementation of ConversationRepositoryProtocol using raw SQL."""

    async def get_by_id(self, conversation_id: str, db: AsyncSession) -> Conversation | None:
        result = await db.execute(_GET_CONVERSATION_SQL, {"id": conversation_id})
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def find(
        self, client_id: str, provider_id: str, order_id: str | None, db: AsyncSession
    ) -> Conversation | None:
        result = await db.execute(
            _FIND_CONVERSATION_SQL,
            {"client_id": client_id, "provider_id": provider_id, "order_id": order_id},
        )
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def find_or_create(
        self, client_id: str, provider_id: str, order_id: str | None, db: AsyncSession
    ) -> tuple[Conversation, bool]:
        """Return (conversation, created). Safe under concurrent callers."""
        params = {"client_id": client_id, "provider_id": provider_id, "order_id": order_id}
        row = (await db.execute(_INSERT_CONVERSATION_SQL, params)).fetchone()
        if row is not None:
            return _row_to_conversation(row), True
        existing = await self.find(client_id, provider_id, order_id, db)
        if existing is None:
            raise RuntimeError(
                f"Conversation insert conflicted but no row found for {client_id}/{provider_id}"
            )
        return existing, False

    async def touch(self, conversation_id: str, db: AsyncSession) -> None:
        await db.execute(_TOUCH_CONVERSATION_SQL, {"id": conversation_id})

    async def list_for_participant(
        self, user_id: str, provider_id: str | None, db: AsyncSession
    ) -> list[ConversationSummary]:
        result = await db.execute(
            _LIST_FOR_PARTICIPANT_SQL, {"user_id": user_id, "provider_id": provider_id}
        )
        return [_row_to_summary(row) for row in result.fetchall()]


class MessageRepository:
    """Concrete implementation of MessageRepositoryProtocol using raw SQL."""

    async def save(self, message: Message, db: AsyncSession) -> Message:
        result = await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "conversation_id": message.conversation_id,
                "sender_id": message.sender_id,
                "content": message.content,
                "is_read": message.is_read,
                "delivery_status": message.delivery_status,
            },
        )
        return _row_to_message(result.fetchone())

    async def get_by_id(self, message_id: str, db: AsyncSession) -> Message | None:
        result = await db.execute(_GET_MESSAGE_SQL, {"id": message_id})
        row = result.fetchone()
        return _row_to_message(row) if row else None

    async def list_page(
        self, conversation_id: str, limit: int, offset: int, db: AsyncSession
    ) -> tuple[list[Message], int]:
        params = {"conversation_id": conversation_id, "limit": limit, "offset": offset}
        rows = (await db.execute(_LIST_MESSAGES_SQL, params)).fetchall()
        total = (
            await db.execute(_COUNT_MESSAGES_SQL, {"conversation_id": conversation_id})
        ).scalar_one()
        return [_row_to_message(row) for row in rows], int(total)

    async def advance_to_delivered(self, message_id: str, db: AsyncSession) -> bool:
        """Move sent → delivered. False when already delivered or read."""
        result = await db.execute(_ADVANCE_TO_DELIVERED_SQL, {"id": message_id})
        return bool(result.rowcount)

    async def mark_read(self, message_id: str, db: AsyncSession) -> None:
        await db.execute(_MARK_READ_SQL, {"id": message_id})

    async def mark_conversation_read(
        self, conversation_id: str, reader_id: str, db: AsyncSession
    ) -> list[str]:
        """Mark every unread message from the other party read.

        Returns the sender id of each updated row (one entry per message).
        """
        result = await db.execute(
            _MARK_CONVERSATION_READ_SQL,
            {"conversation_id": conversation_id, "reader_id": reader_id},
        )
        return [str(row.sender_id) for row in result.fetchall()]

    async def count_unread_for_participant(
        self, user_id: str, provider_id: str | None, db: AsyncSession
    ) -> int:
        result = await db.execute(
            _COUNT_UNREAD_SQL, {"user_id": user_id, "provider_id": provider_id}
        )
        return int(result.scalar_one())
