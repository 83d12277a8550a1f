"""ProviderRepository Protocol: read-only contract used by orders, matching and chat."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_provider.domain.models import Provider


class ProviderRepositoryProtocol(Protocol):
    async def get_by_id(self, provider_id: str, db: AsyncSession) -> Provider | None: ...

    async def get_by_user_id(self, user_id: str, db: AsyncSession) -> Provider | None: ...

    async def lock_for_postulation(self, provider_id: str, db: AsyncSession) -> None: ...

    async def list_active_by_category(
        self, category_id: int, db: AsyncSession
    ) -> list[Provider]: ...
