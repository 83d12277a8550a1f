# src/hs_order/application/service.py
"""OrderApplicationService: order lifecycle from creation to acceptance.

Write operations own their transaction: commit on success, rollback on any
error. Realtime pushes and the candidate-scan dispatch run after commit and
are best effort: their failures are logged, never raised.
"""
import logging
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_chat.domain.models import Message
from src.hs_chat.domain.repository import (
    ConversationRepositoryProtocol,
    MessageRepositoryProtocol,
)
from src.hs_chat.infrastructure.persistence import ConversationRepository, MessageRepository
from src.hs_common.datetime_utils import hours_ago, start_of_month
from src.hs_common.enums import DeliveryStatus, OrderStatus, PostulationStatus
from src.hs_common.errors import (
    DuplicatePostulationError,
    InvalidOrderStateError,
    MissingLocationError,
    NotOrderOwnerError,
    OrderNotFoundError,
    OrderNotOpenError,
    PostulationLimitExceededError,
    PostulationNotFoundError,
    PostulationOrderMismatchError,
    ProviderRequiredError,
)
from src.hs_common.notifier import NullNotifier, RealtimeNotifier
from src.hs_gateway.auth.identity import Identity, ProviderIdentity
from src.hs_matching.domain.candidates import orders_within_radius
from src.hs_order.application.schemas import (
    AcceptPostulationResponse,
    AdminOrderListResponse,
    AvailableJobResponse,
    ClientOrderResponse,
    CreateOrderRequest,
    OrderResponse,
    OrderStatsResponse,
    PostulationResponse,
    PublicRecentOrder,
    PublicRecentOrdersResponse,
    SubmitPostulationRequest,
)
from src.hs_order.domain.constants import (
    ACCEPTANCE_MESSAGE_TEMPLATE,
    JOB_EXPIRY_HOURS,
    JOB_FEED_RADIUS_KM,
    MAX_ACTIVE_POSTULATIONS,
    PUBLIC_RECENT_WINDOW_HOURS,
)
from src.hs_order.domain.models import AcceptanceResult, Order, Postulation
from src.hs_order.domain.repository import (
    OrderRepositoryProtocol,
    PostulationRepositoryProtocol,
)
from src.hs_order.infrastructure.persistence import OrderRepository, PostulationRepository
from src.hs_provider.domain.repository import ProviderRepositoryProtocol
from src.hs_provider.infrastructure.persistence import ProviderRepository

logger = logging.getLogger(__name__)


class OrderDispatcher(Protocol):
    def dispatch(self, order: Order) -> bool: ...


class OrderApplicationService:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        postulations: PostulationRepositoryProtocol | None = None,
        providers: ProviderRepositoryProtocol | None = None,
        conversations: ConversationRepositoryProtocol | None = None,
        messages: MessageRepositoryProtocol | None = None,
        notifier: RealtimeNotifier | None = None,
        dispatcher: OrderDispatcher | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._postulations: PostulationRepositoryProtocol = (
            postulations or PostulationRepository()
        )
        self._providers: ProviderRepositoryProtocol = providers or ProviderRepository()
        self._conversations: ConversationRepositoryProtocol = (
            conversations or ConversationRepository()
        )
        self._messages: MessageRepositoryProtocol = messages or MessageRepository()
        self._notifier: RealtimeNotifier = notifier or NullNotifier()
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_order(
        self, db: AsyncSession, identity: Identity, req: CreateOrderRequest
    ) -> OrderResponse:
        if req.lat is None or req.lng is None:
            raise MissingLocationError()
        draft = Order(
            id="",
            client_id=identity.user_id,
            category_id=req.category_id,
            title=req.title,
            description=req.description,
            lat=req.lat,
            lng=req.lng,
            status=OrderStatus.PENDING.value,
            images=list(req.images),
            budget_estimate=req.budget_estimate,
        )
        try:
            order = await self._orders.save(draft, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Order %s created by %s (category %d)", order.id, order.client_id, order.category_id)
        self._dispatch_scan(order)
        return OrderResponse.from_domain(order)

    async def submit_postulation(
        self,
        db: AsyncSession,
        identity: Identity,
        order_id: str,
        req: SubmitPostulationRequest,
    ) -> PostulationResponse:
        if not isinstance(identity, ProviderIdentity):
            raise ProviderRequiredError()
        provider_id = identity.provider_id

        try:
            # Provider row serializes count + insert; order row keeps the status
            # check valid until commit. Accept never locks providers, so no cycle.
            await self._providers.lock_for_postulation(provider_id, db)

            order = await self._orders.get_for_update(order_id, db)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not order.is_open:
                raise OrderNotOpenError(order_id, order.status)

            active = await self._postulations.count_sent_by_provider(provider_id, db)
            if active >= MAX_ACTIVE_POSTULATIONS:
                raise PostulationLimitExceededError(MAX_ACTIVE_POSTULATIONS)

            existing = await self._postulations.get_by_order_and_provider(
                order_id, provider_id, db
            )
            if existing is not None:
                raise DuplicatePostulationError(order_id)

            try:
                postulation = await self._postulations.save(
                    Postulation(
                        id="",
                        order_id=order_id,
                        provider_id=provider_id,
                        status=PostulationStatus.SENT.value,
                        message=req.message,
                        budget=req.budget,
                    ),
                    db,
                )
            except IntegrityError:
                raise DuplicatePostulationError(order_id) from None

            nudged = await self._orders.mark_matched_if_pending(order_id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Postulation %s sent by provider %s to order %s (matched=%s)",
            postulation.id, provider_id, order_id, nudged,
        )
        await self._notify(
            order.client_id,
            "new_postulation",
            {"order_id": order_id, "postulation_id": postulation.id, "provider_id": provider_id},
        )
        return PostulationResponse.from_domain(postulation)

    async def accept_postulation(
        self,
        db: AsyncSession,
        identity: Identity,
        order_id: str,
        postulation_id: str,
    ) -> AcceptPostulationResponse:
        """Pick the winning postulation and open the conversation, atomically.

        The order row is locked for the whole transaction, so concurrent
        acceptances of one order serialize: the loser sees IN_PROGRESS with a
        different winner and fails with InvalidOrderStateError. Repeating an
        acceptance that already succeeded returns the original result.
        """
        try:
            order = await self._orders.get_for_update(order_id, db)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not order.is_owned_by(identity.user_id):
                raise NotOrderOwnerError(order_id)

            postulation = await self._postulations.get_by_id(postulation_id, db)

            if postulation is not None and _is_replay(order, postulation):
                conversation, _ = await self._conversations.find_or_create(
                    order.client_id, postulation.provider_id, order.id, db
                )
                await db.commit()
                logger.info("Acceptance of order %s replayed", order_id)
                return AcceptPostulationResponse.from_result(
                    AcceptanceResult(order=order, conversation_id=conversation.id, replayed=True)
                )

            if not order.is_acceptable:
                raise InvalidOrderStateError(order_id, order.status)
            if postulation is None:
                raise PostulationNotFoundError(postulation_id)
            if postulation.order_id != order.id:
                raise PostulationOrderMismatchError(postulation_id, order_id)

            order = await self._orders.assign_winner(
                order.id, postulation.provider_id, postulation.budget, db
            )
            await self._postulations.mark_accepted(postulation.id, db)
            rejected = await self._postulations.reject_others(order.id, postulation.id, db)

            conversation, created = await self._conversations.find_or_create(
                order.client_id, postulation.provider_id, order.id, db
            )
            await self._messages.save(
                Message(
                    id="",
                    conversation_id=conversation.id,
                    sender_id=order.client_id,
                    content=ACCEPTANCE_MESSAGE_TEMPLATE.format(title=order.title),
                    is_read=False,
                    delivery_status=DeliveryStatus.SENT.value,
                ),
                db,
            )
            await self._conversations.touch(conversation.id, db)

            provider = await self._providers.get_by_id(postulation.provider_id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s accepted: provider %s won, %d rejected, conversation %s (new=%s)",
            order.id, postulation.provider_id, rejected, conversation.id, created,
        )
        if provider is not None:
            await self._notify(
                provider.user_id,
                "postulation_accepted",
                {
                    "order_id": order.id,
                    "postulation_id": postulation.id,
                    "conversation_id": conversation.id,
                    "title": order.title,
                },
            )
        return AcceptPostulationResponse.from_result(
            AcceptanceResult(order=order, conversation_id=conversation.id)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_available_jobs(
        self, db: AsyncSession, identity: Identity
    ) -> list[AvailableJobResponse]:
        """Provider feed: recent PENDING orders in the provider's categories nearby."""
        if not isinstance(identity, ProviderIdentity):
            raise ProviderRequiredError()
        provider = await self._providers.get_by_id(identity.provider_id, db)
        if provider is None or not provider.has_location:
            return []

        orders = await self._orders.list_open_for_categories(
            provider.all_category_ids, hours_ago(JOB_EXPIRY_HOURS), db
        )
        nearby = orders_within_radius(provider, orders, JOB_FEED_RADIUS_KM)
        return [AvailableJobResponse.from_nearby(n) for n in nearby]

    async def get_order(self, db: AsyncSession, order_id: str) -> OrderResponse:
        order = await self._orders.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderResponse.from_domain(order)

    async def list_client_orders(
        self, db: AsyncSession, identity: Identity
    ) -> list[ClientOrderResponse]:
        orders = await self._orders.list_by_client(identity.user_id, db)
        postulations = await self._postulations.list_by_orders([o.id for o in orders], db)
        by_order: dict[str, list[PostulationResponse]] = {}
        for p in postulations:
            by_order.setdefault(p.order_id, []).append(PostulationResponse.from_domain(p))
        return [
            ClientOrderResponse(
                **OrderResponse.from_domain(o).model_dump(),
                postulations=by_order.get(o.id, []),
            )
            for o in orders
        ]

    async def admin_list_orders(
        self, db: AsyncSession, status: str | None, limit: int, offset: int
    ) -> AdminOrderListResponse:
        orders, total = await self._orders.list_all(status, limit, offset, db)
        return AdminOrderListResponse(
            items=[OrderResponse.from_domain(o) for o in orders],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get_stats(self, db: AsyncSession) -> OrderStatsResponse:
        resolved = await self._orders.count_resolved_since(start_of_month(), db)
        total = await self._orders.count_all(db)
        return OrderStatsResponse(resolved_this_month=resolved, total_orders=total)

    async def list_public_recent(
        self, db: AsyncSession, limit: int
    ) -> PublicRecentOrdersResponse:
        """Anonymized recent orders for the social-proof feed: id, category, time only."""
        rows = await self._orders.list_public_recent(
            hours_ago(PUBLIC_RECENT_WINDOW_HOURS), limit, db
        )
        return PublicRecentOrdersResponse(
            orders=[
                PublicRecentOrder(
                    id=row["id"],
                    category_name=row["category_name"] or "Service",
                    created_at=row["created_at"],
                )
                for row in rows
            ]
        )

    # ------------------------------------------------------------------
    # Best-effort side effects
    # ------------------------------------------------------------------

    def _dispatch_scan(self, order: Order) -> None:
        if self._dispatcher is None:
            return
        try:
            self._dispatcher.dispatch(order)
        except Exception:
            logger.exception("Failed to dispatch candidate scan for order %s", order.id)

    async def _notify(self, user_id: str, event: str, data: dict[str, Any]) -> None:
        try:
            await self._notifier.send_to_user(user_id, event, data)
        except Exception:
            logger.exception("Realtime push %s to user %s failed", event, user_id)


def _is_replay(order: Order, postulation: Postulation) -> bool:
    """True when `postulation` is the already-recorded winner of `order`."""
    return (
        order.status == OrderStatus.IN_PROGRESS.value
        and postulation.order_id == order.id
        and postulation.status == PostulationStatus.ACCEPTED.value
        and order.winner_provider_id == postulation.provider_id
    )
