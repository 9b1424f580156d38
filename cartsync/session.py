"""Guest session identity."""

import secrets
import string
import time
from typing import Optional

from cartsync.db import KeyValueStore, StorageKeys
from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    """Opaque guest id: guest_{epoch_ms}_{9 random base36 chars}."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"guest_{int(time.time() * 1000)}_{suffix}"


class SessionIdentityManager:
    """
    Issues and persists the anonymous shopper's session id.

    The id is created lazily on the first guest read or mutation and kept
    until a migration succeeds or clear() is called. When the store is
    unavailable the id lives on this instance only, for the lifetime of the
    process.
    """

    def __init__(self, store: KeyValueStore, key: str = StorageKeys.SESSION_ID) -> None:
        self.store = store
        self.key = key
        self._fallback_session_id: Optional[str] = None

    async def get_or_create_session_id(self) -> str:
        session_id = await self.get_current_session_id()
        if session_id:
            return session_id

        session_id = generate_session_id()
        try:
            await self.store.set(self.key, session_id)
        except Exception as e:
            logger.warning(
                "Session storage unavailable (%s), keeping guest session in memory",
                type(e).__name__,
            )
            self._fallback_session_id = session_id
        logger.info("Created guest session %s", sanitize_id_for_logging(session_id))
        return session_id

    async def get_current_session_id(self) -> Optional[str]:
        """Read the session id without creating one."""
        if self._fallback_session_id:
            return self._fallback_session_id
        try:
            return await self.store.get(self.key)
        except Exception as e:
            logger.warning("Session storage read failed: %s", type(e).__name__)
            return None

    async def clear(self) -> None:
        self._fallback_session_id = None
        try:
            await self.store.delete(self.key)
        except Exception as e:
            logger.warning("Session storage delete failed: %s", type(e).__name__)
