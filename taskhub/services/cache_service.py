"""Redis cache for read-mostly reference data."""

import json
import logging
from typing import Optional, Any

import redis
from fastapi.requests import HTTPConnection

from taskhub.core.config import settings

logger = logging.getLogger("taskhub.cache")


class CacheService:
    """Redis-backed caching service. Every failure degrades to a cache miss."""

    def __init__(self, url: str = None):
        self.url = url or settings.REDIS_URL
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=2,
            )
        return self._client

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(raw) if raw else None

    def set_json(self, key: str, value: Any, ttl_seconds: int = 600) -> None:
        """Serialize and cache a JSON value with TTL."""
        try:
            self.client.setex(key, ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def delete(self, key: str) -> None:
        """Delete a cached key."""
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def get_cache(conn: HTTPConnection) -> CacheService:
    """FastAPI dependency: the cache built at startup."""
    return conn.app.state.cache
