"""Redis cache for supplier offers."""

import json
import logging
from datetime import date
from typing import Any

import redis.asyncio as redis

from wayfare.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_OFFERS = 15 * 60  # 15 minutes


class CacheService:
    """Redis-backed cache. Every failure degrades to a miss."""

    def __init__(self):
        self._redis: redis.Redis | None = None
        self._disabled = not settings.redis_url

    async def _get_redis(self) -> redis.Redis | None:
        if self._disabled:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                self._disabled = True
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception:
            return None

    async def set(self, key: str, value: Any, ttl: int = TTL_OFFERS) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception:
            return False

    # Typed helpers

    def offers_key(
        self, category: str, origin: str, dest: str, travel_date: date, end_date: date | None, party: str
    ) -> str:
        end = end_date.isoformat() if end_date else "-"
        return f"offers:{category}:{origin.lower()}:{dest.lower()}:{travel_date.isoformat()}:{end}:{party}"

    async def get_offers(self, key: str) -> list[dict] | None:
        return await self.get(key)

    async def set_offers(self, key: str, data: list[dict]):
        await self.set(key, data, TTL_OFFERS)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
