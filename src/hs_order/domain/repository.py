# src/hs_order/domain/repository.py
"""Order/Postulation repository Protocols: interface contract for persistence layer."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_order.domain.models import Order, Postulation


class OrderRepositoryProtocol(Protocol):
    async def save(self, order: Order, db: AsyncSession) -> Order: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def get_for_update(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def mark_matched_if_pending(self, order_id: str, db: AsyncSession) -> bool: ...

    async def assign_winner(
        self,
        order_id: str,
        provider_id: str,
        agreed_price: Decimal | None,
        db: AsyncSession,
    ) -> Order: ...

    async def list_open_for_categories(
        self, category_ids: list[int], created_after: datetime, db: AsyncSession
    ) -> list[Order]: ...

    async def list_by_client(self, client_id: str, db: AsyncSession) -> list[Order]: ...

    async def list_all(
        self, status: str | None, limit: int, offset: int, db: AsyncSession
    ) -> tuple[list[Order], int]: ...

    async def count_resolved_since(self, since: datetime, db: AsyncSession) -> int: ...

    async def count_all(self, db: AsyncSession) -> int: ...

    async def list_public_recent(
        self, since: datetime, limit: int, db: AsyncSession
    ) -> list[dict[str, Any]]: ...


class PostulationRepositoryProtocol(Protocol):
    async def save(self, postulation: Postulation, db: AsyncSession) -> Postulation: ...

    async def get_by_id(self, postulation_id: str, db: AsyncSession) -> Postulation | None: ...

    async def get_by_order_and_provider(
        self, order_id: str, provider_id: str, db: AsyncSession
    ) -> Postulation | None: ...

    async def count_sent_by_provider(self, provider_id: str, db: AsyncSession) -> int: ...

    async def mark_accepted(self, postulation_id: str, db: AsyncSession) -> None: ...

    async def reject_others(
        self, order_id: str, winner_postulation_id: str, db: AsyncSession
    ) -> int: ...

    async def list_by_orders(
        self, order_ids: list[str], db: AsyncSession
    ) -> list[Postulation]: ...
