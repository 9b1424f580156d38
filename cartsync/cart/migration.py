"""Guest to user cart migration."""
import asyncio
from typing import Optional

from cartsync.auth import AuthService
from cartsync.errors import MigrationFailure, NetworkFailure
from cartsync.events import CartEvent, EventBus
from cartsync.http import ApiClient
from cartsync.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from .backends import GuestCartBackend, SESSION_HEADER
from .models import Cart, CartKind

logger = get_logger(__name__)


class MigrationCoordinator:
    """
    Merges the guest cart into the user's cart right after login.

    The server does the merge (POST /cart/migrate with the bearer token and
    the guest session id) and answers with the merged cart. Guest state is
    cleared only after that succeeds, so a failed migration can be retried
    on the next login. Without a guest session there is nothing to merge
    and the call returns None.
    """

    def __init__(self, api: ApiClient, guest_backend: GuestCartBackend, event_bus: EventBus) -> None:
        self.api = api
        self.guest = guest_backend
        self.events = event_bus
        # Overlapping login handlers must not both send the same session id
        self._lock = asyncio.Lock()

    async def migrate(self, auth_token: str) -> Optional[Cart]:
        """
        Request the server-side merge for the current guest session.

        Raises:
            MigrationFailure: the merge request failed; guest state is kept
        """
        async with self._lock:
            session_id = await self.guest.session.get_current_session_id()
            if not session_id:
                logger.debug("No guest session, skipping cart migration")
                return None

            logger.info("Migrating guest cart %s to user account", sanitize_id_for_logging(session_id))
            headers = {
                "Authorization": f"Bearer {auth_token}",
                SESSION_HEADER: session_id,
            }
            try:
                response = await self.api.post("/cart/migrate", headers=headers)
            except NetworkFailure as e:
                logger.error("Guest cart migration failed: %s", sanitize_string_for_logging(e.message))
                raise MigrationFailure() from e

            data = response.get("data")
            merged = Cart.from_payload(data if isinstance(data, dict) else {}, CartKind.AUTHENTICATED)

            await self.guest.clear_local_state()
            logger.info("Guest cart migrated: %d line(s) in merged cart", merged.items_count)

        await self.events.publish(CartEvent.CART_UPDATED)
        return merged

    async def migrate_on_login(self, auth: AuthService) -> Optional[Cart]:
        """
        Login hook. Never raises: a failed migration must not block login.
        """
        token = await auth.get_id_token()
        if not token:
            logger.warning("Login reported without a token, skipping cart migration")
            return None
        try:
            return await self.migrate(token)
        except MigrationFailure:
            logger.warning("Continuing login without cart migration", exc_info=True)
            return None
