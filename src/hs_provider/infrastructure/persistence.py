"""ProviderRepository: raw SQL, read-only.

Provider profiles are managed by the provider CRUD surface; this service only
reads them (identity resolution, candidate matching, chat display).
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_provider.domain.models import Provider

_SELECT_COLUMNS = """
    p.id, p.user_id, p.category_id, p.first_name, p.last_name, p.status,
    p.lat, p.lng, p.avatar_url, p.emergency_available,
    ARRAY(
        SELECT pc.category_id FROM provider_categories pc WHERE pc.provider_id = p.id
    ) AS category_ids
"""

_GET_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM providers p WHERE p.id = :id
""")

_GET_BY_USER_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM providers p WHERE p.user_id = :user_id
""")

# Serializes concurrent postulation submissions of the same provider so the
# active-postulation count check and the insert see a consistent view.
_LOCK_PROVIDER_SQL = text("""
    SELECT id FROM providers WHERE id = :id FOR UPDATE
""")

_LIST_ACTIVE_BY_CATEGORY_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM providers p
    WHERE p.status = 'active'
      AND (
        p.category_id = :category_id
        OR EXISTS (
            SELECT 1 FROM provider_categories pc
            WHERE pc.provider_id = p.id AND pc.category_id = :category_id
        )
      )
""")


def _to_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _row_to_provider(row: Any) -> Provider:
    return Provider(
        id=str(row.id),
        user_id=str(row.user_id),
        category_id=row.category_id,
        first_name=row.first_name,
        last_name=row.last_name,
        status=row.status,
        lat=_to_float(row.lat),
        lng=_to_float(row.lng),
        avatar_url=row.avatar_url,
        emergency_available=bool(row.emergency_available),
        category_ids=list(row.category_ids or []),
    )


class ProviderRepository:
    """Concrete implementation of ProviderRepositoryProtocol using raw SQL."""

    async def get_by_id(self, provider_id: str, db: AsyncSession) -> Provider | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": provider_id})
        row = result.fetchone()
        return _row_to_provider(row) if row else None

    async def get_by_user_id(self, user_id: str, db: AsyncSession) -> Provider | None:
        result = await db.execute(_GET_BY_USER_ID_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_provider(row) if row else None

    async def lock_for_postulation(self, provider_id: str, db: AsyncSession) -> None:
        await db.execute(_LOCK_PROVIDER_SQL, {"id": provider_id})

    async def list_active_by_category(
        self, category_id: int, db: AsyncSession
    ) -> list[Provider]:
        result = await db.execute(_LIST_ACTIVE_BY_CATEGORY_SQL, {"category_id": category_id})
        return [_row_to_provider(row) for row in result.fetchall()]
