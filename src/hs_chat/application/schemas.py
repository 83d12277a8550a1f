# src/hs_chat/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, Field

from src.hs_chat.domain.models import (
    Conversation,
    ConversationSummary,
    LastMessage,
    Message,
    ParticipantProfile,
)


class CreateConversationRequest(BaseModel):
    # Provider id when a client opens the chat, client user id when a provider does
    target_id: str = Field(min_length=1)
    order_id: str | None = None


class SendMessageRequest(BaseModel):
    content: str = Field(max_length=5000)


class ConversationResponse(BaseModel):
    id: str
    client_id: str
    provider_id: str
    order_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, c: Conversation) -> "ConversationResponse":
        return cls(
            id=c.id,
            client_id=c.client_id,
            provider_id=c.provider_id,
            order_id=c.order_id,
            created_at=c.created_at,
            updated_at=c.updated_at,
        )


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    is_read: bool
    delivery_status: str
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, m: Message) -> "MessageResponse":
        return cls(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            content=m.content,
            is_read=m.is_read,
            delivery_status=m.delivery_status,
            created_at=m.created_at,
        )


class PageMeta(BaseModel):
    total: int
    limit: int
    offset: int


class MessagePageResponse(BaseModel):
    data: list[MessageResponse]
    meta: PageMeta


class OtherUser(BaseModel):
    id: str | None = None
    first_name: str
    last_name: str = ""
    avatar_url: str | None = None

    @classmethod
    def from_profile(cls, p: ParticipantProfile) -> "OtherUser":
        return cls(
            id=p.id, first_name=p.first_name, last_name=p.last_name, avatar_url=p.avatar_url
        )


class LastMessageResponse(BaseModel):
    content: str
    sender_id: str
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, m: LastMessage) -> "LastMessageResponse":
        return cls(content=m.content, sender_id=m.sender_id, created_at=m.created_at)


class ConversationSummaryResponse(BaseModel):
    id: str
    client_id: str
    provider_id: str
    order_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_message: LastMessageResponse | None = None
    other_user: OtherUser | None = None
    unread_count: int = 0

    @classmethod
    def build(
        cls, summary: ConversationSummary, other_user: ParticipantProfile | None
    ) -> "ConversationSummaryResponse":
        c = summary.conversation
        return cls(
            id=c.id,
            client_id=c.client_id,
            provider_id=c.provider_id,
            order_id=c.order_id,
            created_at=c.created_at,
            updated_at=c.updated_at,
            last_message=(
                LastMessageResponse.from_domain(summary.last_message)
                if summary.last_message
                else None
            ),
            other_user=OtherUser.from_profile(other_user) if other_user else None,
            unread_count=summary.unread_count,
        )


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    updated: int
