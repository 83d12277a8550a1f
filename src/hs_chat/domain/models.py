"""Chat domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.hs_common.enums import DeliveryStatus
from src.hs_gateway.auth.identity import Identity, ProviderIdentity


@dataclass
class Conversation:
    id: str
    client_id: str
    provider_id: str
    order_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_client(self, identity: Identity) -> bool:
        return self.client_id == identity.user_id

    def is_provider(self, identity: Identity) -> bool:
        return isinstance(identity, ProviderIdentity) and identity.provider_id == self.provider_id

    def is_participant(self, identity: Identity) -> bool:
        return self.is_client(identity) or self.is_provider(identity)


@dataclass
class Participants:
    """User ids of both sides of a conversation."""

    client_user_id: str
    provider_user_id: str | None

    def other_than(self, user_id: str) -> str | None:
        if user_id == self.client_user_id:
            return self.provider_user_id
        return self.client_user_id


@dataclass
class Message:
    id: str
    conversation_id: str
    sender_id: str
    content: str
    is_read: bool = False
    delivery_status: str = DeliveryStatus.SENT.value
    created_at: datetime | None = None

    @property
    def status(self) -> DeliveryStatus:
        return DeliveryStatus(self.delivery_status)


@dataclass
class ParticipantProfile:
    id: str | None
    first_name: str
    last_name: str = ""
    avatar_url: str | None = None


@dataclass
class LastMessage:
    content: str
    sender_id: str
    created_at: datetime | None


@dataclass
class ConversationSummary:
    conversation: Conversation
    provider_user_id: str | None
    provider_first_name: str | None
    provider_last_name: str | None
    provider_avatar_url: str | None
    last_message: LastMessage | None
    unread_count: int
