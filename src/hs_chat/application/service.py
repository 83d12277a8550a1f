# src/hs_chat/application/service.py
"""ChatApplicationService: conversations, messages and delivery state.

Shared by the REST router and the realtime protocol. Every operation
re-derives participation from the caller's identity before touching data.
Realtime fan-out is not done here; callers receive enough information
(recipient, sender) to push events themselves.
"""
import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_chat.application.schemas import (
    ConversationResponse,
    ConversationSummaryResponse,
    CreateConversationRequest,
    MessagePageResponse,
    MessageResponse,
    PageMeta,
    UnreadCountResponse,
)
from src.hs_chat.domain.models import (
    Conversation,
    ConversationSummary,
    Message,
    ParticipantProfile,
    Participants,
)
from src.hs_chat.domain.repository import (
    ConversationRepositoryProtocol,
    MessageRepositoryProtocol,
)
from src.hs_chat.infrastructure.persistence import ConversationRepository, MessageRepository
from src.hs_chat.infrastructure.profile_client import UserProfileClient, placeholder_profile
from src.hs_common.enums import DeliveryStatus
from src.hs_common.errors import (
    ConversationAccessDeniedError,
    ConversationNotFoundError,
    EmptyMessageError,
    InvalidPayloadError,
    MessageNotFoundError,
    NotMessageRecipientError,
    ProviderNotFoundError,
)
from src.hs_gateway.auth.identity import Identity, ProviderIdentity, provider_id_of
from src.hs_provider.domain.repository import ProviderRepositoryProtocol
from src.hs_provider.infrastructure.persistence import ProviderRepository

logger = logging.getLogger(__name__)

PROVIDER_PLACEHOLDER_NAME = "Provider"


@dataclass
class PostedMessage:
    message: Message
    sender_id: str
    recipient_user_id: str | None


class ChatApplicationService:
    def __init__(
        self,
        conversations: ConversationRepositoryProtocol | None = None,
        messages: MessageRepositoryProtocol | None = None,
        providers: ProviderRepositoryProtocol | None = None,
        profiles: UserProfileClient | None = None,
    ) -> None:
        self._conversations: ConversationRepositoryProtocol = (
            conversations or ConversationRepository()
        )
        self._messages: MessageRepositoryProtocol = messages or MessageRepository()
        self._providers: ProviderRepositoryProtocol = providers or ProviderRepository()
        self._profiles = profiles

    # ------------------------------------------------------------------
    # Authorization helpers
    # ------------------------------------------------------------------

    async def authorize(
        self, db: AsyncSession, identity: Identity, conversation_id: str
    ) -> Conversation:
        """Load a conversation the caller participates in.

        Raises:
            ConversationNotFoundError: no such conversation.
            ConversationAccessDeniedError: caller is neither its client nor its provider.
        """
        conversation = await self._conversations.get_by_id(conversation_id, db)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        if not conversation.is_participant(identity):
            raise ConversationAccessDeniedError(conversation_id)
        return conversation

    async def participants(self, db: AsyncSession, conversation: Conversation) -> Participants:
        provider = await self._providers.get_by_id(conversation.provider_id, db)
        return Participants(
            client_user_id=conversation.client_id,
            provider_user_id=provider.user_id if provider else None,
        )

    async def _load_for_recipient(
        self, db: AsyncSession, identity: Identity, message_id: str
    ) -> Message:
        message = await self._messages.get_by_id(message_id, db)
        if message is None:
            raise MessageNotFoundError(message_id)
        await self.authorize(db, identity, message.conversation_id)
        if message.sender_id == identity.user_id:
            raise NotMessageRecipientError(message_id)
        return message

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_or_get_conversation(
        self, db: AsyncSession, identity: Identity, req: CreateConversationRequest
    ) -> ConversationResponse:
        if isinstance(identity, ProviderIdentity):
            if req.target_id == identity.user_id:
                raise InvalidPayloadError("cannot open a conversation with yourself")
            client_id, provider_id = req.target_id, identity.provider_id
        else:
            provider = await self._providers.get_by_id(req.target_id, db)
            if provider is None:
                raise ProviderNotFoundError(req.target_id)
            client_id, provider_id = identity.user_id, provider.id

        try:
            conversation, created = await self._conversations.find_or_create(
                client_id, provider_id, req.order_id, db
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if created:
            logger.info(
                "Conversation %s opened between client %s and provider %s",
                conversation.id, client_id, provider_id,
            )
        return ConversationResponse.from_domain(conversation)

    async def get_conversations(
        self, db: AsyncSession, identity: Identity, authorization: str | None = None
    ) -> list[ConversationSummaryResponse]:
        provider_id = provider_id_of(identity)
        summaries = await self._conversations.list_for_participant(
            identity.user_id, provider_id, db
        )
        others = await asyncio.gather(
            *(self._other_user(identity, s, authorization) for s in summaries)
        )
        return [
            ConversationSummaryResponse.build(s, other) for s, other in zip(summaries, others)
        ]

    async def _other_user(
        self, identity: Identity, summary: ConversationSummary, authorization: str | None
    ) -> ParticipantProfile | None:
        if summary.conversation.is_provider(identity):
            # Clients live in the external user service
            client_id = summary.conversation.client_id
            if self._profiles is None:
                return placeholder_profile(client_id)
            return await self._profiles.get_public_profile(client_id, authorization)
        if summary.provider_user_id is None:
            return None
        return ParticipantProfile(
            id=summary.provider_user_id,
            first_name=summary.provider_first_name or PROVIDER_PLACEHOLDER_NAME,
            last_name=summary.provider_last_name or "",
            avatar_url=summary.provider_avatar_url,
        )

    async def get_unread_count(self, db: AsyncSession, identity: Identity) -> UnreadCountResponse:
        provider_id = provider_id_of(identity)
        count = await self._messages.count_unread_for_participant(
            identity.user_id, provider_id, db
        )
        return UnreadCountResponse(count=count)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def list_messages(
        self,
        db: AsyncSession,
        identity: Identity,
        conversation_id: str,
        limit: int,
        offset: int,
    ) -> MessagePageResponse:
        await self.authorize(db, identity, conversation_id)
        messages, total = await self._messages.list_page(conversation_id, limit, offset, db)
        return MessagePageResponse(
            data=[MessageResponse.from_domain(m) for m in messages],
            meta=PageMeta(total=total, limit=limit, offset=offset),
        )

    async def post_message(
        self, db: AsyncSession, identity: Identity, conversation_id: str, content: str
    ) -> PostedMessage:
        """Persist a message as sent/unread and resolve who should receive it."""
        if not content or not content.strip():
            raise EmptyMessageError()

        try:
            conversation = await self.authorize(db, identity, conversation_id)
            message = await self._messages.save(
                Message(
                    id="",
                    conversation_id=conversation.id,
                    sender_id=identity.user_id,
                    content=content,
                    is_read=False,
                    delivery_status=DeliveryStatus.SENT.value,
                ),
                db,
            )
            await self._conversations.touch(conversation.id, db)
            participants = await self.participants(db, conversation)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return PostedMessage(
            message=message,
            sender_id=identity.user_id,
            recipient_user_id=participants.other_than(identity.user_id),
        )

    async def mark_delivered(
        self, db: AsyncSession, identity: Identity, message_id: str
    ) -> Message | None:
        """Recipient acknowledges delivery. Returns the message if its status moved.

        A message that is already read stays read.
        """
        message = await self._load_for_recipient(db, identity, message_id)
        if not message.status.can_advance_to(DeliveryStatus.DELIVERED):
            return None
        return message if await self.confirm_delivery(db, message.id) else None

    async def confirm_delivery(self, db: AsyncSession, message_id: str) -> bool:
        """Conditional sent → delivered transition; no identity checks."""
        try:
            changed = await self._messages.advance_to_delivered(message_id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return changed

    async def mark_read(self, db: AsyncSession, identity: Identity, message_id: str) -> Message:
        message = await self._load_for_recipient(db, identity, message_id)
        try:
            await self._messages.mark_read(message.id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        message.is_read = True
        message.delivery_status = DeliveryStatus.READ.value
        return message

    async def mark_conversation_read(
        self, db: AsyncSession, identity: Identity, conversation_id: str
    ) -> tuple[int, list[str]]:
        """Bulk-read the other party's messages.

        Returns (rows updated, distinct sender ids in first-seen order).
        """
        await self.authorize(db, identity, conversation_id)
        try:
            sender_ids = await self._messages.mark_conversation_read(
                conversation_id, identity.user_id, db
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return len(sender_ids), list(dict.fromkeys(sender_ids))
