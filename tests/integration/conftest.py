"""Integration-test fixtures.

Requires a running PostgreSQL with migrations applied (alembic upgrade head).
All integration tests share one event loop so the module-level SQLAlchemy
engine pool stays valid for the whole session. The suite is skipped when the
database is unreachable or not migrated.
"""
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.hs_common.database import engine, session_scope
from src.hs_gateway.auth.jwt_handler import create_access_token
from src.main import app

_INSERT_CATEGORY_SQL = text("""
    INSERT INTO categories (name, slug) VALUES (:name, :slug) RETURNING id
""")

_INSERT_PROVIDER_SQL = text("""
    INSERT INTO providers (user_id, category_id, first_name, last_name, lat, lng)
    VALUES (:user_id, :category_id, :first_name, :last_name, :lat, :lng)
    RETURNING id
""")


@dataclass
class Actor:
    user_id: str
    token: str
    provider_id: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM orders LIMIT 0"))
    except (OSError, SQLAlchemyError) as e:
        pytest.skip(f"database not available: {e}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def category_id() -> int:
    slug = f"plumbing-{uuid.uuid4().hex[:8]}"
    async with session_scope() as db:
        result = await db.execute(_INSERT_CATEGORY_SQL, {"name": "Plumbing", "slug": slug})
        return int(result.scalar_one())


def _new_client() -> Actor:
    user_id = f"client-{uuid.uuid4().hex[:8]}"
    return Actor(user_id=user_id, token=create_access_token(user_id))


async def _new_provider(category_id: int, lat: float, lng: float) -> Actor:
    user_id = f"prov-user-{uuid.uuid4().hex[:8]}"
    async with session_scope() as db:
        result = await db.execute(
            _INSERT_PROVIDER_SQL,
            {
                "user_id": user_id,
                "category_id": category_id,
                "first_name": "Ana",
                "last_name": "Diaz",
                "lat": lat,
                "lng": lng,
            },
        )
        provider_id = str(result.scalar_one())
    return Actor(
        user_id=user_id,
        token=create_access_token(user_id, role="provider"),
        provider_id=provider_id,
    )


@pytest.fixture
def make_client() -> Callable[[], Actor]:
    """Factory for fresh client identities (clients live only in the user service)."""
    return _new_client


@pytest.fixture
def make_provider(category_id: int) -> Callable[..., Awaitable[Actor]]:
    """Factory inserting a fresh provider near the default order location."""

    async def _make(lat: float = -34.61, lng: float = -68.31) -> Actor:
        return await _new_provider(category_id, lat, lng)

    return _make
