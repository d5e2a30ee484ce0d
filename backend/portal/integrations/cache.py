"""Cache service with Protocol pattern for dependency injection.

RedisCacheService is used when REDIS_URL is set and reachable; otherwise
NullCacheService makes every lookup a miss so callers fall through to the
database.
"""

import json
import logging
from typing import Protocol

import redis

from ..config import settings

logger = logging.getLogger(__name__)


class CacheService(Protocol):
    """Cache service interface."""

    def get_json(self, key: str) -> dict | None: ...
    def set_json(self, key: str, data: dict, ttl: int) -> None: ...
    def delete(self, key: str) -> None: ...


class RedisCacheService:
    """Redis-backed cache implementation. Errors degrade to cache misses."""

    def __init__(self, redis_url: str) -> None:
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._client.ping()

    def get_json(self, key: str) -> dict | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError:
            logger.warning("Cache read failed for %s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    def set_json(self, key: str, data: dict, ttl: int) -> None:
        try:
            self._client.setex(key, ttl, json.dumps(data, ensure_ascii=False))
        except redis.RedisError:
            logger.warning("Cache write failed for %s", key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError:
            logger.warning("Cache delete failed for %s", key)


class NullCacheService:
    """No-op cache for when Redis is unavailable."""

    def get_json(self, key: str) -> dict | None:
        return None

    def set_json(self, key: str, data: dict, ttl: int) -> None:
        pass

    def delete(self, key: str) -> None:
        pass


def create_cache_service() -> CacheService:
    """Factory: create the appropriate cache service based on configuration."""
    if not settings.redis_url:
        return NullCacheService()
    try:
        return RedisCacheService(settings.redis_url)
    except redis.RedisError:
        logger.warning("Redis unreachable at startup, caching disabled")
        return NullCacheService()
