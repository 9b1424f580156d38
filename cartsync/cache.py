"""TTL cache over a key/value store.

Entries are stored as JSON ``{"data": ..., "timestamp": epoch_ms}`` and the
TTL is checked when the entry is read. A stale, missing, or undecodable
entry is a miss; storage outages are a miss too. Nothing here raises to the
caller on read.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cartsync.db import KeyValueStore
from cartsync.errors import CacheCorruption
from cartsync.logging import get_logger

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    data: Any
    timestamp: int

    def age_ms(self, now: int) -> int:
        return now - self.timestamp

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "timestamp": self.timestamp})

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        try:
            payload = json.loads(raw)
            return cls(data=payload["data"], timestamp=int(payload["timestamp"]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheCorruption(f"Malformed cache entry: {e}") from e


class TTLCache:
    """
    Key/value cache with a fixed TTL for every key it holds.

    One instance per cache class (guest cart snapshot, product records).
    Last writer wins; there is no locking.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = ttl_seconds * 1000
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        """Return cached data, or None on miss."""
        try:
            raw = await self.store.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, type(e).__name__)
            return None

        if raw is None:
            logger.debug("Cache miss: %s", key)
            return None

        try:
            entry = CacheEntry.from_json(raw)
        except CacheCorruption as e:
            logger.warning("Dropping corrupted cache entry %s: %s", key, e)
            await self._delete_quietly(key)
            return None

        if entry.age_ms(self._clock()) > self.ttl_ms:
            logger.debug("Cache entry expired: %s", key)
            await self._delete_quietly(key)
            return None

        logger.debug("Cache hit: %s", key)
        return entry.data

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value stamped with the current time."""
        entry = CacheEntry(data=value, timestamp=self._clock())
        try:
            await self.store.set(key, entry.to_json())
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, type(e).__name__)

    async def invalidate(self, key: str) -> None:
        await self._delete_quietly(key)

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except Exception as e:
            logger.warning("Cache delete failed for %s: %s", key, type(e).__name__)
