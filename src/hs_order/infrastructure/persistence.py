# src/hs_order/infrastructure/persistence.py
"""Order/Postulation repositories: raw SQL persistence implementation.

Transaction ownership: the CALLER (application service) opens and commits the
transaction. asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL.
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_order.domain.models import Order, Postulation

# ---------------------------------------------------------------------------
# SQL statements: orders
# ---------------------------------------------------------------------------

_ORDER_COLUMNS = """
    id, client_id, category_id, title, description, lat, lng, status,
    images, budget_estimate, winner_provider_id, final_agreed_price,
    created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (client_id, category_id, title, description, lat, lng,
        status, images, budget_estimate)
    VALUES (:client_id, :category_id, :title, :description, :lat, :lng,
        :status, CAST(:images AS JSONB), :budget_estimate)
    RETURNING {_ORDER_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders WHERE id = :id
""")

# Row lock: acceptances and postulations on the same order serialize here
_GET_ORDER_FOR_UPDATE_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders WHERE id = :id FOR UPDATE
""")

# Advisory nudge on first postulation; no-op once the order moved past PENDING
_MARK_MATCHED_SQL = text("""
    UPDATE orders SET status = 'MATCHED', updated_at = NOW()
    WHERE id = :id AND status = 'PENDING'
""")

_ASSIGN_WINNER_SQL = text(f"""
    UPDATE orders
    SET winner_provider_id = :provider_id,
        status = 'IN_PROGRESS',
        final_agreed_price = COALESCE(CAST(:agreed_price AS NUMERIC), final_agreed_price),
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_ORDER_COLUMNS}
""")

_LIST_OPEN_FOR_CATEGORIES_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    WHERE status = 'PENDING'
      AND category_id = ANY(CAST(:category_ids AS INT[]))
      AND created_at > :created_after
    ORDER BY created_at DESC
""")

_LIST_BY_CLIENT_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders WHERE client_id = :client_id
    ORDER BY created_at DESC
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    WHERE (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_ALL_FILTERED_SQL = text("""
    SELECT COUNT(*) FROM orders
    WHERE (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
""")

_COUNT_RESOLVED_SINCE_SQL = text("""
    SELECT COUNT(*) FROM orders
    WHERE status IN ('COMPLETED', 'IN_PROGRESS') AND created_at >= :since
""")

_LIST_PUBLIC_RECENT_SQL = text("""
    SELECT o.id, o.created_at, c.name AS category_name
    FROM orders o
    LEFT JOIN categories c ON c.id = o.category_id
    WHERE o.status IN ('PENDING', 'MATCHED', 'IN_PROGRESS', 'COMPLETED')
      AND o.created_at > :since
    ORDER BY o.created_at DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL statements: postulations
# ---------------------------------------------------------------------------

_POSTULATION_COLUMNS = """
    id, order_id, provider_id, status, message, budget, created_at, updated_at
"""

_INSERT_POSTULATION_SQL = text(f"""
    INSERT INTO postulations (order_id, provider_id, status, message, budget)
    VALUES (:order_id, :provider_id, :status, :message, :budget)
    RETURNING {_POSTULATION_COLUMNS}
""")

_GET_POSTULATION_BY_ID_SQL = text(f"""
    SELECT {_POSTULATION_COLUMNS}
    FROM postulations WHERE id = :id
""")

_GET_POSTULATION_BY_PAIR_SQL = text(f"""
    SELECT {_POSTULATION_COLUMNS}
    FROM postulations WHERE order_id = :order_id AND provider_id = :provider_id
""")

_COUNT_SENT_BY_PROVIDER_SQL = text("""
    SELECT COUNT(*) FROM postulations
    WHERE provider_id = :provider_id AND status = 'SENT'
""")

_MARK_ACCEPTED_SQL = text("""
    UPDATE postulations SET status = 'ACCEPTED', updated_at = NOW()
    WHERE id = :id
""")

_REJECT_OTHERS_SQL = text("""
    UPDATE postulations SET status = 'REJECTED', updated_at = NOW()
    WHERE order_id = :order_id AND id <> :winner_id AND status <> 'ACCEPTED'
""")

_LIST_BY_ORDERS_SQL = text(f"""
    SELECT {_POSTULATION_COLUMNS}
    FROM postulations
    WHERE order_id = ANY(CAST(:order_ids AS TEXT[]))
    ORDER BY created_at ASC
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _decode_images(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [str(url) for url in raw]


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=str(row.id),
        client_id=str(row.client_id),
        category_id=row.category_id,
        title=row.title,
        description=row.description,
        lat=float(row.lat),
        lng=float(row.lng),
        status=row.status,
        images=_decode_images(row.images),
        budget_estimate=row.budget_estimate,
        winner_provider_id=(
            str(row.winner_provider_id) if row.winner_provider_id is not None else None
        ),
        final_agreed_price=row.final_agreed_price,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_postulation(row: Any) -> Postulation:
    return Postulation(
        id=str(row.id),
        order_id=str(row.order_id),
        provider_id=str(row.provider_id),
        status=row.status,
        message=row.message,
        budget=row.budget,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, order: Order, db: AsyncSession) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "client_id": order.client_id,
                "category_id": order.category_id,
                "title": order.title,
                "description": order.description,
                "lat": order.lat,
                "lng": order.lng,
                "status": order.status,
                "images": json.dumps(order.images),
                "budget_estimate": order.budget_estimate,
            },
        )
        return _row_to_order(result.fetchone())

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_for_update(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_FOR_UPDATE_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def mark_matched_if_pending(self, order_id: str, db: AsyncSession) -> bool:
        result = await db.execute(_MARK_MATCHED_SQL, {"id": order_id})
        return bool(result.rowcount)

    async def assign_winner(
        self,
        order_id: str,
        provider_id: str,
        agreed_price: Decimal | None,
        db: AsyncSession,
    ) -> Order:
        result = await db.execute(
            _ASSIGN_WINNER_SQL,
            {"id": order_id, "provider_id": provider_id, "agreed_price": agreed_price},
        )
        return _row_to_order(result.fetchone())

    async def list_open_for_categories(
        self, category_ids: list[int], created_after: datetime, db: AsyncSession
    ) -> list[Order]:
        result = await db.execute(
            _LIST_OPEN_FOR_CATEGORIES_SQL,
            {"category_ids": category_ids, "created_after": created_after},
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_by_client(self, client_id: str, db: AsyncSession) -> list[Order]:
        result = await db.execute(_LIST_BY_CLIENT_SQL, {"client_id": client_id})
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_all(
        self, status: str | None, limit: int, offset: int, db: AsyncSession
    ) -> tuple[list[Order], int]:
        result = await db.execute(
            _LIST_ALL_SQL, {"status": status, "limit": limit, "offset": offset}
        )
        orders = [_row_to_order(row) for row in result.fetchall()]
        total = (await db.execute(_COUNT_ALL_FILTERED_SQL, {"status": status})).scalar_one()
        return orders, int(total)

    async def count_resolved_since(self, since: datetime, db: AsyncSession) -> int:
        result = await db.execute(_COUNT_RESOLVED_SINCE_SQL, {"since": since})
        return int(result.scalar_one())

    async def count_all(self, db: AsyncSession) -> int:
        result = await db.execute(_COUNT_ALL_FILTERED_SQL, {"status": None})
        return int(result.scalar_one())

    async def list_public_recent(
        self, since: datetime, limit: int, db: AsyncSession
    ) -> list[dict[str, Any]]:
        result = await db.execute(_LIST_PUBLIC_RECENT_SQL, {"since": since, "limit": limit})
        return [
            {"id": str(row.id), "category_name": row.category_name, "created_at": row.created_at}
            for row in result.fetchall()
        ]


class PostulationRepository:
    """Concrete implementation of PostulationRepositoryProtocol using raw SQL."""

    async def save(self, postulation: Postulation, db: AsyncSession) -> Postulation:
        result = await db.execute(
            _INSERT_POSTULATION_SQL,
            {
                "order_id": postulation.order_id,
                "provider_id": postulation.provider_id,
                "status": postulation.status,
                "message": postulation.message,
                "budget": postulation.budget,
            },
        )
        return _row_to_postulation(result.fetchone())

    async def get_by_id(self, postulation_id: str, db: AsyncSession) -> Postulation | None:
        result = await db.execute(_GET_POSTULATION_BY_ID_SQL, {"id": postulation_id})
        row = result.fetchone()
        return _row_to_postulation(row) if row else None

    async def get_by_order_and_provider(
        self, order_id: str, provider_id: str, db: AsyncSession
    ) -> Postulation | None:
        result = await db.execute(
            _GET_POSTULATION_BY_PAIR_SQL, {"order_id": order_id, "provider_id": provider_id}
        )
        row = result.fetchone()
        return _row_to_postulation(row) if row else None

    async def count_sent_by_provider(self, provider_id: str, db: AsyncSession) -> int:
        result = await db.execute(_COUNT_SENT_BY_PROVIDER_SQL, {"provider_id": provider_id})
        return int(result.scalar_one())

    async def mark_accepted(self, postulation_id: str, db: AsyncSession) -> None:
        await db.execute(_MARK_ACCEPTED_SQL, {"id": postulation_id})

    async def reject_others(
        self, order_id: str, winner_postulation_id: str, db: AsyncSession
    ) -> int:
        result = await db.execute(
            _REJECT_OTHERS_SQL, {"order_id": order_id, "winner_id": winner_postulation_id}
        )
        return int(result.rowcount or 0)

    async def list_by_orders(
        self, order_ids: list[str], db: AsyncSession
    ) -> list[Postulation]:
        if not order_ids:
            return []
        result = await db.execute(_LIST_BY_ORDERS_SQL, {"order_ids": order_ids})
        return [_row_to_postulation(row) for row in result.fetchall()]
