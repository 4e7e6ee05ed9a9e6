"""
Cache accessor bridging a client's token cache to an external store.
"""

import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Protocol, TYPE_CHECKING, runtime_checkable

from shared.logging import get_logger
from shared.errors import (
    CacheContractError,
    CacheExportError,
    CacheUnmarshalError,
    StoreError,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..store.factory import KeyValueStore


@runtime_checkable
class Marshaler(Protocol):
    """Anything that can serialize its cache state to bytes."""

    def marshal(self) -> bytes:
        ...


@runtime_checkable
class Unmarshaler(Protocol):
    """Anything that can load its cache state from bytes."""

    def unmarshal(self, data: bytes) -> None:
        ...


@dataclass
class AccessorStats:
    """Running counts of accessor outcomes."""

    exports: int = 0
    export_failures: int = 0
    replaces: int = 0
    hits: int = 0
    misses: int = 0
    read_failures: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class TokenCacheAccessor:
    """Export/replace hooks around a key-value store.

    Each call performs exactly one store operation. Nothing is cached in
    process, so call latency is the store round trip plus (un)marshaling.
    """

    def __init__(self, store: "KeyValueStore", metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("token_cache.accessor")
        self.stats = AccessorStats()
        self._stats_lock = threading.Lock()

    def export(self, writer: Marshaler, key: str) -> None:
        """Marshal ``writer`` and store the blob under ``key``.

        The store's default retention applies. On failure nothing is stored
        and ``CacheExportError`` is raised after logging.
        """
        start = time.perf_counter()
        try:
            data = writer.marshal()
        except Exception as exc:
            self._record("export", "marshal_error", start)
            self.logger.error("Cache marshal failed; entry not stored", key=key, error=str(exc))
            raise CacheExportError(
                f"Marshal failed for key {key}",
                details={"key": key, "error": str(exc)}
            ) from exc

        try:
            self.store.set(key, data, None)
        except StoreError as exc:
            self._record("export", "store_error", start)
            self.logger.error("Cache store write failed; entry not stored", key=key, error=str(exc))
            raise CacheExportError(
                f"Store write failed for key {key}",
                details={"key": key, "error": str(exc)}
            ) from exc

        self._record("export", "ok", start)
        self.logger.debug("Cache partition exported", key=key, size=len(data))

    def replace(self, reader: Unmarshaler, key: str) -> bool:
        """Load the blob stored under ``key`` into ``reader``.

        Returns False on a cache miss, which is a no-op. Returns True once
        ``reader`` has unmarshaled the stored blob. After a
        ``CacheUnmarshalError`` the reader's state is whatever its
        ``unmarshal`` left behind.
        """
        start = time.perf_counter()
        try:
            value, found = self.store.get(key)
        except StoreError as exc:
            self._record("replace", "store_error", start)
            self.logger.error("Cache store read failed", key=key, error=str(exc))
            raise

        if not found:
            self._record("replace", "miss", start)
            self.logger.debug("Cache partition not found", key=key)
            return False

        try:
            data = self._to_bytes(value)
        except TypeError as exc:
            self._record("replace", "contract_error", start)
            self.logger.error(
                "Stored cache value is not a byte sequence",
                key=key,
                value_type=type(value).__name__
            )
            raise CacheContractError(
                f"Value under key {key} is {type(value).__name__}, expected bytes",
                details={"key": key, "value_type": type(value).__name__}
            ) from exc

        try:
            reader.unmarshal(data)
        except Exception as exc:
            self._record("replace", "unmarshal_error", start)
            self.logger.error("Cache unmarshal failed", key=key, error=str(exc))
            raise CacheUnmarshalError(
                f"Unmarshal failed for key {key}",
                details={"key": key, "error": str(exc)}
            ) from exc

        self._record("replace", "hit", start)
        return True

    @staticmethod
    def _to_bytes(value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        raise TypeError(f"unsupported cache value type {type(value).__name__}")

    def _record(self, operation: str, result: str, start: float) -> None:
        duration = time.perf_counter() - start

        with self._stats_lock:
            if operation == "export":
                self.stats.exports += 1
                if result != "ok":
                    self.stats.export_failures += 1
            else:
                self.stats.replaces += 1
                if result == "hit":
                    self.stats.hits += 1
                elif result == "miss":
                    self.stats.misses += 1
                else:
                    self.stats.read_failures += 1

        if self.metrics:
            self.metrics.record_accessor_operation(operation, result, duration)
