"""
Store backend selection.
"""

from typing import Any, Optional, Protocol, Tuple, Union

from shared.config import BaseConfig
from shared.errors import ValidationError
from .memory_store import MemoryStore
from .redis_store import RedisStore


class KeyValueStore(Protocol):
    """What the cache accessor needs from a store."""

    def get(self, key: str) -> Tuple[Optional[Any], bool]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...


def create_store(config: BaseConfig) -> Union[MemoryStore, RedisStore]:
    """Build the store backend named by ``config.store_backend``."""
    backend = config.store_backend.lower()

    if backend == "memory":
        return MemoryStore(
            default_ttl=config.store_default_ttl_seconds,
            cleanup_interval=config.store_cleanup_interval_seconds,
        )
    if backend == "redis":
        return RedisStore(
            config.redis_url,
            default_ttl=config.store_default_ttl_seconds,
            key_prefix=config.redis_key_prefix,
        )

    raise ValidationError(
        f"Unknown store backend: {config.store_backend}",
        details={"store_backend": config.store_backend, "supported": ["memory", "redis"]}
    )
