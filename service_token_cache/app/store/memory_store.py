"""
Expiring in-memory key-value store.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from shared.logging import get_logger


# Sentinel TTL values
DEFAULT_EXPIRATION = None
NO_EXPIRATION = -1


@dataclass
class _Item:
    value: Any
    expires_at: Optional[float]

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryStore:
    """Thread-safe in-memory map with per-entry expiry.

    Entries stored with ``ttl=None`` use the store default TTL; a TTL of
    ``NO_EXPIRATION`` (or any value <= 0) keeps the entry until it is
    overwritten or deleted. Expired entries are invisible to ``get`` even
    before the janitor removes them.
    """

    backend = "memory"

    def __init__(
        self,
        default_ttl: float = 300.0,
        cleanup_interval: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.clock = clock
        self.logger = get_logger("token_cache.store.memory")

        self._items: Dict[str, _Item] = {}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._janitor: Optional[threading.Thread] = None

    def start(self):
        """Start the background janitor if a cleanup interval is configured."""
        if self.cleanup_interval <= 0 or self._janitor is not None:
            return

        self._stop_event.clear()
        self._janitor = threading.Thread(
            target=self._run_janitor,
            name="memory-store-janitor",
            daemon=True
        )
        self._janitor.start()
        self.logger.info("Memory store janitor started", interval=self.cleanup_interval)

    def stop(self):
        """Stop the background janitor."""
        if self._janitor is None:
            return

        self._stop_event.set()
        self._janitor.join(timeout=5)
        self._janitor = None
        self.logger.info("Memory store janitor stopped")

    def _run_janitor(self):
        while not self._stop_event.wait(self.cleanup_interval):
            removed = self.delete_expired()
            if removed:
                self.logger.debug("Evicted expired entries", count=removed)

    def _expiry(self, ttl: Optional[float]) -> Optional[float]:
        if ttl is DEFAULT_EXPIRATION:
            ttl = self.default_ttl
        if ttl <= 0:
            return None
        return self.clock() + ttl

    def get(self, key: str) -> Tuple[Optional[Any], bool]:
        """Return ``(value, found)`` for a key."""
        with self._lock:
            item = self._items.get(key)
            if item is None or item.expired(self.clock()):
                return None, False
            return item.value, True

    def set(self, key: str, value: Any, ttl: Optional[float] = DEFAULT_EXPIRATION) -> None:
        """Store a value, replacing any existing entry under the key."""
        expires_at = self._expiry(ttl)
        with self._lock:
            self._items[key] = _Item(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self._lock:
            return self._items.pop(key, None) is not None

    def delete_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self.clock()
        with self._lock:
            expired_keys = [key for key, item in self._items.items() if item.expired(now)]
            for key in expired_keys:
                del self._items[key]
        return len(expired_keys)

    def item_count(self) -> int:
        """Number of stored entries, expired ones included until evicted."""
        with self._lock:
            return len(self._items)

    def flush(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._items.clear()
