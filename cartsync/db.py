"""
Storage Module - persisted local state

Provides the key/value stores behind the session id and the TTL caches:
- MemoryStore: per-process dict, used when nothing else is configured
- RedisStore: Upstash Redis, shared by every engine pointed at the same instance
"""

from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from cartsync.config import get_settings
from cartsync.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    """Async string key/value store."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Dict-backed store. Contents live as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class RedisStore(KeyValueStore):
    """Upstash Redis store.

    Expiry is evaluated by TTLCache at read time, so keys are written
    without a Redis-side TTL.
    """

    def __init__(self, client: AsyncRedis) -> None:
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(key)
        return value if value else None

    async def set(self, key: str, value: str) -> None:
        await self.client.set(key, value)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)


_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """
    Get the process-wide store (singleton).

    Uses Upstash Redis when UPSTASH_REDIS_REST_URL and
    UPSTASH_REDIS_REST_TOKEN are set, otherwise an in-memory store.
    """
    global _store

    if _store is None:
        settings = get_settings()
        if settings.redis_configured:
            _store = RedisStore(AsyncRedis(url=settings.redis_url, token=settings.redis_token))
        else:
            logger.info("Upstash Redis not configured, cart state kept in memory")
            _store = MemoryStore()

    return _store


class StorageKeys:
    """Keys for persisted local state."""

    SESSION_ID = "guest_cart_session_id"
    GUEST_CART = "guest_cart_cache"

    # Aggregate product maps, one per caller context
    CART_PRODUCT_DETAILS = "cart_product_details"
    WISHLIST_PRODUCT_DETAILS = "wishlist_product_details"

    PRODUCT = "product_"  # product_{product_id}

    @staticmethod
    def product_key(product_id: str) -> str:
        return f"{StorageKeys.PRODUCT}{product_id}"


class TTL:
    """Time-to-live constants for cache entries (in seconds)."""

    GUEST_CART = 30 * 60  # 30 minutes
    PRODUCT = 24 * 60 * 60  # 24 hours
