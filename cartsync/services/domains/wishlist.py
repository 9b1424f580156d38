"""Wishlist Domain Service.

Favorites of the signed-in user. There is no guest wishlist: every
operation requires an authenticated session. Mutations publish
``wishlistUpdated`` so other views re-read the list.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

from cartsync.auth import AuthService
from cartsync.db import StorageKeys
from cartsync.errors import (
    AuthenticationRequired,
    MutationFailed,
    NetworkFailure,
    PartialClearFailure,
    ERROR_WISHLIST_FAILED,
)
from cartsync.events import CartEvent, EventBus
from cartsync.http import ApiClient
from cartsync.logging import get_logger
from cartsync.services.models import ProductSummary
from cartsync.services.products import ProductDetailEnricher

if TYPE_CHECKING:
    from cartsync.cart.service import CartRepository
    from cartsync.cart.models import Cart

logger = get_logger(__name__)


@dataclass
class WishlistItem:
    """Wishlist item."""

    id: str
    product_id: str
    created_at: str = ""
    product: Optional[ProductSummary] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WishlistItem":
        product = data.get("product")
        return cls(
            id=str(data.get("id") or ""),
            product_id=str(data["product_id"]),
            created_at=data.get("created_at") or "",
            product=ProductSummary.model_validate(product) if isinstance(product, dict) else None,
        )


def _favorites_from_response(response: dict[str, Any]) -> list[dict[str, Any]]:
    """The list endpoint nests items as favorites.favorites; older builds use data."""
    container = response.get("favorites", response.get("data"))
    if isinstance(container, dict):
        container = container.get("favorites", container.get("items"))
    return [item for item in container or [] if isinstance(item, dict) and item.get("product_id")]


class WishlistRepository:
    """Favorites of the signed-in user.

    Every call raises AuthenticationRequired before any request when no
    user is signed in, and a 401/403 from the server maps to the same
    error. add_item, remove_item and clear publish ``wishlistUpdated``.
    Membership checks use GET /favorites/{id}/check only when
    ``check_enabled`` is set; otherwise they search the full list.
    """

    def __init__(
        self,
        api: ApiClient,
        auth: AuthService,
        event_bus: EventBus,
        enricher: Optional[ProductDetailEnricher] = None,
        check_enabled: bool = False,
    ) -> None:
        self.api = api
        self.auth = auth
        self.events = event_bus
        self.enricher = enricher
        self.check_enabled = check_enabled

    async def _headers(self) -> dict[str, str]:
        if not self.auth.is_authenticated():
            raise AuthenticationRequired()
        token = await self.auth.get_id_token()
        if not token:
            raise AuthenticationRequired()
        return {"Authorization": f"Bearer {token}"}

    async def _call(self, method: str, endpoint: str, json: Optional[dict] = None) -> dict[str, Any]:
        headers = await self._headers()
        try:
            if method == "GET":
                return await self.api.get(endpoint, headers=headers)
            return await self.api.request(method, endpoint, json=json, headers=headers)
        except NetworkFailure as e:
            if e.is_unauthorized:
                raise AuthenticationRequired() from e
            raise

    async def get_wishlist(self) -> list[WishlistItem]:
        """Get the user's wishlist items, with product details attached.

        Returns:
            List of WishlistItem in server order

        """
        response = await self._call("GET", "/favorites")
        items = [WishlistItem.from_dict(item) for item in _favorites_from_response(response)]
        if self.enricher is not None and items:
            await self.enricher.enrich_lines(items, StorageKeys.WISHLIST_PRODUCT_DETAILS)
        return items

    async def get_wishlist_item(self, product_id: str) -> Optional[WishlistItem]:
        items = await self.get_wishlist()
        return next((item for item in items if item.product_id == product_id), None)

    async def get_count(self) -> int:
        return len(await self.get_wishlist())

    async def add_item(self, product_id: str) -> list[WishlistItem]:
        """Add product to wishlist.

        Args:
            product_id: Product id

        Returns:
            The refreshed wishlist

        """
        logger.info("Adding %s to wishlist", product_id)
        try:
            await self._call("POST", "/favorites", {"product_id": product_id})
        except NetworkFailure as e:
            # 409: already in the list
            if e.status_code != 409:
                raise MutationFailed(ERROR_WISHLIST_FAILED) from e

        await self.events.publish(CartEvent.WISHLIST_UPDATED)
        return await self.get_wishlist()

    async def remove_item(self, product_id: str) -> list[WishlistItem]:
        """Remove product from wishlist.

        Args:
            product_id: Product id

        Returns:
            The refreshed wishlist

        """
        logger.info("Removing %s from wishlist", product_id)
        try:
            await self._call("DELETE", f"/favorites/{quote(str(product_id), safe='')}")
        except NetworkFailure as e:
            raise MutationFailed(ERROR_WISHLIST_FAILED) from e

        await self.events.publish(CartEvent.WISHLIST_UPDATED)
        return await self.get_wishlist()

    async def clear(self) -> list[WishlistItem]:
        """Remove every item, one request per item.

        Raises:
            PartialClearFailure: some items were removed, others were not
            MutationFailed: nothing could be removed

        """
        items = await self.get_wishlist()
        removed: list[str] = []
        failed: dict[str, Exception] = {}

        for item in items:
            try:
                await self._call("DELETE", f"/favorites/{quote(item.product_id, safe='')}")
                removed.append(item.product_id)
            except NetworkFailure as e:
                logger.warning("Failed to remove %s while clearing wishlist: %s", item.product_id, type(e).__name__)
                failed[item.product_id] = e

        if removed:
            await self.events.publish(CartEvent.WISHLIST_UPDATED)
        if failed:
            if removed:
                raise PartialClearFailure(removed, failed)
            raise MutationFailed(ERROR_WISHLIST_FAILED) from next(iter(failed.values()))
        return []

    async def is_in_wishlist(self, product_id: str) -> bool:
        """Check if product is in the user's wishlist.

        Uses GET /favorites/{id}/check when enabled, otherwise looks the id
        up in the full list.

        Args:
            product_id: Product id

        Returns:
            True if in wishlist

        """
        if not self.check_enabled:
            return await self.get_wishlist_item(product_id) is not None

        response = await self._call("GET", f"/favorites/{quote(str(product_id), safe='')}/check")
        data = response.get("data") if isinstance(response.get("data"), dict) else response
        for key in ("is_favorite", "in_wishlist", "exists"):
            if key in data:
                return bool(data[key])
        return False

    async def toggle(self, product_id: str) -> bool:
        """Add if absent, remove if present. Returns the new membership."""
        if await self.is_in_wishlist(product_id):
            await self.remove_item(product_id)
            return False
        await self.add_item(product_id)
        return True

    async def move_to_cart(self, product_id: str, cart: "CartRepository") -> "Cart":
        """Move one item from the wishlist into the cart with quantity 1.

        The cart add happens first so a failed add leaves the wishlist
        untouched.
        """
        if await self.get_wishlist_item(product_id) is None:
            raise MutationFailed("Item not found in wishlist")

        updated_cart = await cart.add_item(product_id, 1)
        await self.remove_item(product_id)
        return updated_cart
