"""
Cart engine wiring.

create_cart_engine() builds every collaborator once and hands back a
CartEngine the host application keeps for the lifetime of the process.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from cartsync.auth import AuthService
from cartsync.cache import TTLCache
from cartsync.cart.backends import AuthenticatedCartBackend, GuestCartBackend
from cartsync.cart.migration import MigrationCoordinator
from cartsync.cart.models import Cart
from cartsync.cart.service import CartRepository
from cartsync.config import Settings, get_settings
from cartsync.db import KeyValueStore, TTL, get_store
from cartsync.events import CartEvent, EventBus, get_event_bus
from cartsync.http import ApiClient
from cartsync.logging import get_logger
from cartsync.services.domains.wishlist import WishlistRepository
from cartsync.services.products import ProductCatalogClient, ProductDetailEnricher
from cartsync.session import SessionIdentityManager

logger = get_logger(__name__)


@dataclass
class CartEngine:
    """Everything a storefront process needs to keep cart and wishlist in sync."""

    auth: AuthService
    cart: CartRepository
    wishlist: WishlistRepository
    migrator: MigrationCoordinator
    events: EventBus
    session: SessionIdentityManager
    api: ApiClient
    guest_api: ApiClient

    async def on_login(self) -> Optional[Cart]:
        """Call right after the host signs the user in. Never raises on migration failure."""
        return await self.migrator.migrate_on_login(self.auth)

    async def on_logout(self) -> None:
        await self.auth.logout()
        # Every view now belongs to the guest identity
        await self.events.publish(CartEvent.CART_UPDATED)
        await self.events.publish(CartEvent.WISHLIST_UPDATED)

    async def aclose(self) -> None:
        await self.api.aclose()
        if self.guest_api is not self.api:
            await self.guest_api.aclose()


def create_cart_engine(
    auth: AuthService,
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    event_bus: Optional[EventBus] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CartEngine:
    """
    Wire a CartEngine.

    Args:
        auth: host-provided authentication collaborator
        settings: defaults to environment settings
        store: persisted local state, defaults to the process store
        event_bus: defaults to the process-wide bus
        http_client: shared httpx client, e.g. one with a mock transport

    Returns:
        Ready-to-use CartEngine
    """
    settings = settings or get_settings()
    store = store if store is not None else get_store()
    events = event_bus if event_bus is not None else get_event_bus()

    api = ApiClient(settings.api_base_path, timeout=settings.http_timeout, http_client=http_client)
    if settings.guest_api_base_path == settings.api_base_path:
        guest_api = api
    else:
        guest_api = ApiClient(settings.guest_api_base_path, timeout=settings.http_timeout, http_client=http_client)

    guest_cart_cache = TTLCache(store, TTL.GUEST_CART)
    product_cache = TTLCache(store, TTL.PRODUCT)

    session = SessionIdentityManager(store)
    guest_backend = GuestCartBackend(guest_api, session, guest_cart_cache)
    authenticated_backend = AuthenticatedCartBackend(api, auth)
    enricher = ProductDetailEnricher(ProductCatalogClient(api), product_cache)

    cart = CartRepository(auth, authenticated_backend, guest_backend, events, enricher=enricher)
    wishlist = WishlistRepository(
        api,
        auth,
        events,
        enricher=enricher,
        check_enabled=settings.wishlist_check_enabled,
    )
    migrator = MigrationCoordinator(api, guest_backend, events)

    logger.info(
        "Cart engine ready (api=%s, guest_api=%s, store=%s)",
        settings.api_base_path,
        settings.guest_api_base_path,
        type(store).__name__,
    )
    return CartEngine(
        auth=auth,
        cart=cart,
        wishlist=wishlist,
        migrator=migrator,
        events=events,
        session=session,
        api=api,
        guest_api=guest_api,
    )
