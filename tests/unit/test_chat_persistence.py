"""Unit tests for ConversationRepository / MessageRepository using MagicMock AsyncSession."""
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.hs_chat.domain.models import Message
from src.hs_chat.infrastructure.persistence import ConversationRepository, MessageRepository


def _make_conversation_row(**kwargs: Any) -> MagicMock:
    row = MagicMock()
    row.id = kwargs.get("id", "conv-1")
    row.client_id = kwargs.get("client_id", "client-1")
    row.provider_id = kwargs.get("provider_id", "prov-1")
    row.order_id = kwargs.get("order_id", "ord-1")
    row.created_at = kwargs.get("created_at", datetime.now(UTC))
    row.updated_at = kwargs.get("updated_at", datetime.now(UTC))
    return row


def _make_message_row(**kwargs: Any) -> MagicMock:
    row = MagicMock()
    row.id = kwargs.get("id", "msg-1")
    row.conversation_id = kwargs.get("conversation_id", "conv-1")
    row.sender_id = kwargs.get("sender_id", "client-1")
    row.content = kwargs.get("content", "hello")
    row.is_read = kwargs.get("is_read", False)
    row.delivery_status = kwargs.get("delivery_status", "sent")
    row.created_at = kwargs.get("created_at", datetime.now(UTC))
    return row


def _result(*, one: Any = None, rows: list | None = None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = rows or []
    return result


def _make_db(*results: MagicMock) -> MagicMock:
    db = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    return db


class TestConversationRepository:
    async def test_find_or_create_inserts(self) -> None:
        db = _make_db(_result(one=_make_conversation_row()))
        conversation, created = await ConversationRepository().find_or_create(
            "client-1", "prov-1", "ord-1", db
        )
        assert created is True
        assert conversation.id == "conv-1"
        assert db.execute.await_count == 1

    async def test_find_or_create_returns_existing_on_conflict(self) -> None:
        db = _make_db(_result(one=None), _result(one=_make_conversation_row(id="conv-old")))
        conversation, created = await ConversationRepository().find_or_create(
            "client-1", "prov-1", "ord-1", db
        )
        assert created is False
        assert conversation.id == "conv-old"

    async def test_find_or_create_conflict_without_row_raises(self) -> None:
        db = _make_db(_result(one=None), _result(one=None))
        with pytest.raises(RuntimeError):
            await ConversationRepository().find_or_create("client-1", "prov-1", None, db)

    async def test_null_order_preserved(self) -> None:
        db = _make_db(_result(one=_make_conversation_row(order_id=None)))
        conversation, _ = await ConversationRepository().find_or_create(
            "client-1", "prov-1", None, db
        )
        assert conversation.order_id is None

    async def test_list_for_participant_maps_summary(self) -> None:
        row = _make_conversation_row()
        row.provider_user_id = "user-p1"
        row.provider_first_name = "Ana"
        row.provider_last_name = "Diaz"
        row.provider_avatar_url = None
        row.last_content = "see you at 5"
        row.last_sender_id = "user-p1"
        row.last_created_at = datetime.now(UTC)
        row.unread_count = 2
        empty = _make_conversation_row(id="conv-2")
        empty.provider_user_id = None
        empty.provider_first_name = None
        empty.provider_last_name = None
        empty.provider_avatar_url = None
        empty.last_content = None
        empty.last_sender_id = None
        empty.last_created_at = None
        empty.unread_count = 0
        db = _make_db(_result(rows=[row, empty]))

        summaries = await ConversationRepository().list_for_participant("client-1", None, db)

        assert summaries[0].last_message is not None
        assert summaries[0].last_message.content == "see you at 5"
        assert summaries[0].unread_count == 2
        assert summaries[0].provider_user_id == "user-p1"
        assert summaries[1].last_message is None
        assert summaries[1].provider_user_id is None


class TestMessageRepository:
    async def test_save(self) -> None:
        db = _make_db(_result(one=_make_message_row()))
        saved = await MessageRepository().save(
            Message(id="", conversation_id="conv-1", sender_id="client-1", content="hello"), db
        )
        params = db.execute.call_args[0][1]
        assert params["delivery_status"] == "sent"
        assert params["is_read"] is False
        assert saved.id == "msg-1"

    async def test_list_page_returns_total(self) -> None:
        count = MagicMock()
        count.scalar_one.return_value = 41
        db = _make_db(_result(rows=[_make_message_row(id="m2"), _make_message_row(id="m1")]), count)
        messages, total = await MessageRepository().list_page("conv-1", 20, 0, db)
        assert [m.id for m in messages] == ["m2", "m1"]
        assert total == 41

    async def test_advance_to_delivered_is_conditional(self) -> None:
        changed = MagicMock(rowcount=1)
        unchanged = MagicMock(rowcount=0)
        db = _make_db(changed, unchanged)
        repo = MessageRepository()
        assert await repo.advance_to_delivered("msg-1", db) is True
        assert await repo.advance_to_delivered("msg-1", db) is False
        sql = str(db.execute.call_args[0][0])
        assert "delivery_status IN ('pending', 'sent')" in sql

    async def test_mark_conversation_read_returns_sender_per_row(self) -> None:
        rows = [MagicMock(sender_id="user-p1"), MagicMock(sender_id="user-p1")]
        db = _make_db(_result(rows=rows))
        senders = await MessageRepository().mark_conversation_read("conv-1", "client-1", db)
        assert senders == ["user-p1", "user-p1"]
        assert db.execute.call_args[0][1] == {"conversation_id": "conv-1", "reader_id": "client-1"}

    async def test_count_unread(self) -> None:
        result = MagicMock()
        result.scalar_one.return_value = 5
        db = _make_db(result)
        assert await MessageRepository().count_unread_for_participant("user-p1", "prov-1", db) == 5
