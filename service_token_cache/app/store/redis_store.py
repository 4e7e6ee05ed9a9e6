"""
Redis-backed key-value store.
"""

from typing import Any, Optional, Tuple

import redis

from shared.logging import get_logger
from shared.errors import StoreError
from .memory_store import DEFAULT_EXPIRATION


class RedisStore:
    """Key-value store over a synchronous Redis client.

    Values are written as raw bytes (``decode_responses`` stays off) so the
    accessor receives exactly the blob it exported.
    """

    backend = "redis"

    def __init__(
        self,
        redis_url: str,
        default_ttl: int = 300,
        key_prefix: str = "token_cache:",
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self.logger = get_logger("token_cache.store.redis")
        self.redis: Optional[redis.Redis] = client

    def start(self):
        """Connect to Redis."""
        try:
            if self.redis is None:
                self.redis = redis.Redis.from_url(
                    self.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30
                )

            # Test connection
            self.redis.ping()

            self.logger.info("Redis store started", redis_url=self.redis_url)

        except redis.RedisError as e:
            self.logger.error("Failed to start Redis store", error=str(e))
            raise StoreError("redis", str(e))

    def stop(self):
        """Close the Redis connection."""
        if self.redis:
            self.redis.close()
            self.logger.info("Redis store stopped")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Tuple[Optional[Any], bool]:
        """Return ``(value, found)`` for a key."""
        try:
            value = self.redis.get(self._key(key))
        except redis.RedisError as e:
            self.logger.error("Redis get failed", key=key, error=str(e))
            raise StoreError("redis", str(e), details={"key": key})

        if value is None:
            return None, False
        return value, True

    def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_EXPIRATION) -> None:
        """Store a value; ``ttl=None`` applies the store default retention."""
        if ttl is DEFAULT_EXPIRATION:
            ttl = self.default_ttl

        try:
            if ttl > 0:
                self.redis.set(self._key(key), value, ex=int(ttl))
            else:
                self.redis.set(self._key(key), value)
        except redis.RedisError as e:
            self.logger.error("Redis set failed", key=key, error=str(e))
            raise StoreError("redis", str(e), details={"key": key})

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        try:
            return bool(self.redis.delete(self._key(key)))
        except redis.RedisError as e:
            self.logger.error("Redis delete failed", key=key, error=str(e))
            raise StoreError("redis", str(e), details={"key": key})

    def item_count(self) -> int:
        """Number of harness keys currently stored."""
        return sum(1 for _ in self.redis.scan_iter(match=f"{self.key_prefix}*"))

    def flush(self) -> None:
        """Remove every harness key."""
        keys = list(self.redis.scan_iter(match=f"{self.key_prefix}*"))
        if keys:
            self.redis.delete(*keys)
        self.logger.info("Redis store flushed", count=len(keys))

    def health_check(self) -> bool:
        """Check Redis health."""
        try:
            self.redis.ping()
            return True
        except redis.RedisError:
            return False
