"""Public profile lookups against the external user service.

Profiles are cached in Redis under `profile:{user_id}`. Every failure path
(user service down, bad payload, Redis unavailable) degrades: a Redis error
falls through to a direct lookup, and a lookup error returns a placeholder
profile so the surrounding request still succeeds.
"""
import json
import logging
from collections.abc import Awaitable, Callable

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings
from src.hs_chat.domain.models import ParticipantProfile
from src.hs_common.redis_client import get_redis

logger = logging.getLogger(__name__)

PLACEHOLDER_FIRST_NAME = "User"

RedisFactory = Callable[[], Awaitable[aioredis.Redis]]


def placeholder_profile(user_id: str) -> ParticipantProfile:
    return ParticipantProfile(id=user_id, first_name=PLACEHOLDER_FIRST_NAME)


class UserProfileClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        cache_ttl: int | None = None,
        redis_factory: RedisFactory | None = get_redis,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.USER_SERVICE_URL,
            timeout=timeout if timeout is not None else settings.USER_SERVICE_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._cache_ttl = cache_ttl if cache_ttl is not None else settings.PROFILE_CACHE_TTL_SECONDS
        self._redis_factory = redis_factory

    async def close(self) -> None:
        await self._client.aclose()

    async def get_public_profile(
        self, user_id: str, authorization: str | None = None
    ) -> ParticipantProfile:
        cached = await self._cache_get(user_id)
        if cached is not None:
            return cached

        try:
            profile = await self._fetch(user_id, authorization)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Profile lookup for user %s failed: %s", user_id, e)
            return placeholder_profile(user_id)

        await self._cache_set(profile)
        return profile

    async def _fetch(self, user_id: str, authorization: str | None) -> ParticipantProfile:
        headers = {"Authorization": authorization} if authorization else None
        response = await self._client.get(f"/api/v1/users/{user_id}/public", headers=headers)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("profile payload is not an object")
        return ParticipantProfile(
            id=str(data.get("id") or user_id),
            first_name=data.get("first_name") or PLACEHOLDER_FIRST_NAME,
            last_name=data.get("last_name") or "",
            avatar_url=data.get("avatar_url"),
        )

    async def _cache_get(self, user_id: str) -> ParticipantProfile | None:
        if self._redis_factory is None:
            return None
        try:
            redis = await self._redis_factory()
            raw = await redis.get(_cache_key(user_id))
        except RedisError as e:
            logger.warning("Profile cache read failed for user %s: %s", user_id, e)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return ParticipantProfile(**data)
        except (ValueError, TypeError):
            return None

    async def _cache_set(self, profile: ParticipantProfile) -> None:
        if self._redis_factory is None or profile.id is None:
            return
        payload = json.dumps(
            {
                "id": profile.id,
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "avatar_url": profile.avatar_url,
            }
        )
        try:
            redis = await self._redis_factory()
            await redis.set(_cache_key(profile.id), payload, ex=self._cache_ttl)
        except RedisError as e:
            logger.warning("Profile cache write failed for user %s: %s", profile.id, e)


def _cache_key(user_id: str) -> str:
    return f"profile:{user_id}"
