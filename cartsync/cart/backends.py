"""Cart backends: one per identity.

Both speak the same /cart/* resource shapes. The authenticated backend
sends a bearer token and never caches; the guest backend sends the guest
session id and keeps a 30 minute snapshot of the last cart it saw.
"""
from typing import Any, Optional
from urllib.parse import quote

from cartsync.auth import AuthService
from cartsync.cache import TTLCache
from cartsync.db import StorageKeys
from cartsync.errors import AuthenticationRequired, NetworkFailure, UnsupportedOperation, ERROR_GUEST_COUPON
from cartsync.http import ApiClient
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.session import SessionIdentityManager
from .models import Cart, CartKind, CartSummary, CartValidation

logger = get_logger(__name__)

SESSION_HEADER = "X-Session-ID"


def _item_path(product_id: str, action: str = "") -> str:
    path = f"/cart/items/{quote(str(product_id), safe='')}"
    return f"{path}/{action}" if action else path


def _data(response: dict[str, Any]) -> dict[str, Any]:
    data = response.get("data")
    return data if isinstance(data, dict) else {}


def _carries_cart(data: dict[str, Any]) -> bool:
    """True when a response body holds a cart, wrapped or bare."""
    return isinstance(data.get("cart"), dict) or isinstance(data.get("items"), list)


class CartBackend:
    """Operations every cart backend supports."""

    kind: CartKind

    async def fetch_cart(self, use_cache: bool = True) -> Cart:
        raise NotImplementedError

    async def add_item(self, product_id: str, quantity: int) -> Cart:
        raise NotImplementedError

    async def update_item(self, product_id: str, quantity: int) -> Cart:
        raise NotImplementedError

    async def remove_item(self, product_id: str) -> Cart:
        raise NotImplementedError

    async def increment_item(self, product_id: str) -> Cart:
        raise NotImplementedError

    async def decrement_item(self, product_id: str) -> Cart:
        raise NotImplementedError

    async def get_summary(self) -> CartSummary:
        raise NotImplementedError

    async def get_count(self) -> int:
        raise NotImplementedError

    async def validate(self) -> CartValidation:
        raise NotImplementedError

    async def apply_coupon(self, coupon_code: str) -> Cart:
        raise NotImplementedError

    async def remove_coupon(self) -> Cart:
        raise NotImplementedError


class AuthenticatedCartBackend(CartBackend):
    """
    Cart of the signed-in user.

    The server is the only source of truth for this identity: reads always
    go to the network, and after every mutation the full cart is fetched
    again instead of trusting the mutation response.
    """

    kind = CartKind.AUTHENTICATED

    def __init__(self, api: ApiClient, auth: AuthService) -> None:
        self.api = api
        self.auth = auth

    async def _headers(self) -> dict[str, str]:
        token = await self.auth.get_id_token()
        if not token:
            raise AuthenticationRequired()
        return {"Authorization": f"Bearer {token}"}

    async def _call(self, method: str, endpoint: str, json: Optional[dict] = None) -> dict[str, Any]:
        headers = await self._headers()
        try:
            return await self.api.request(method, endpoint, json=json, headers=headers)
        except NetworkFailure as e:
            if e.is_unauthorized:
                raise AuthenticationRequired() from e
            raise

    async def _get(self, endpoint: str) -> dict[str, Any]:
        headers = await self._headers()
        try:
            return await self.api.get(endpoint, headers=headers)
        except NetworkFailure as e:
            if e.is_unauthorized:
                raise AuthenticationRequired() from e
            raise

    async def fetch_cart(self, use_cache: bool = True) -> Cart:
        response = await self._get("/cart")
        return Cart.from_payload(_data(response), self.kind)

    async def add_item(self, product_id: str, quantity: int) -> Cart:
        await self._call("POST", "/cart/items", {"product_id": product_id, "quantity": quantity})
        return await self.fetch_cart()

    async def update_item(self, product_id: str, quantity: int) -> Cart:
        await self._call("PUT", _item_path(product_id), {"quantity": quantity})
        return await self.fetch_cart()

    async def remove_item(self, product_id: str) -> Cart:
        await self._call("DELETE", _item_path(product_id))
        return await self.fetch_cart()

    async def increment_item(self, product_id: str) -> Cart:
        await self._call("POST", _item_path(product_id, "increment"))
        return await self.fetch_cart()

    async def decrement_item(self, product_id: str) -> Cart:
        await self._call("POST", _item_path(product_id, "decrement"))
        return await self.fetch_cart()

    async def get_summary(self) -> CartSummary:
        response = await self._get("/cart/summary")
        return CartSummary.from_payload(_data(response), self.kind)

    async def get_count(self) -> int:
        response = await self._get("/cart/count")
        return int(_data(response).get("item_count") or 0)

    async def validate(self) -> CartValidation:
        response = await self._get("/cart/validate")
        return CartValidation.from_payload(_data(response), self.kind)

    async def apply_coupon(self, coupon_code: str) -> Cart:
        response = await self._call("POST", "/cart/apply-coupon", {"coupon_code": coupon_code})
        cart = Cart.from_payload(_data(response), self.kind)
        # The coupon response carries the discount but not always the lines
        if cart.is_empty:
            return await self.fetch_cart()
        return cart

    async def remove_coupon(self) -> Cart:
        await self._call("DELETE", "/cart/remove-coupon")
        return await self.fetch_cart()


class GuestCartBackend(CartBackend):
    """
    Cart of the anonymous shopper, addressed by the guest session id.

    Reads prefer the cached snapshot while it is fresh. Every mutation
    response replaces the snapshot so the next read sees it.
    """

    kind = CartKind.GUEST

    def __init__(self, api: ApiClient, session: SessionIdentityManager, cache: TTLCache) -> None:
        self.api = api
        self.session = session
        self.cache = cache

    async def _headers(self) -> dict[str, str]:
        session_id = await self.session.get_or_create_session_id()
        return {SESSION_HEADER: session_id}

    async def _cart_from_response(self, response: dict[str, Any], session_id: str) -> Cart:
        cart = Cart.from_payload(_data(response), self.kind, session_id=session_id)
        await self._cache_cart(cart, session_id)
        return cart

    async def _cache_cart(self, cart: Cart, session_id: str) -> None:
        await self.cache.set(StorageKeys.GUEST_CART, {"session_id": session_id, "cart": cart.to_dict()})

    async def get_cached_cart(self) -> Optional[Cart]:
        """Snapshot for the current session, or None if missing, stale, or foreign."""
        session_id = await self.session.get_current_session_id()
        if not session_id:
            return None

        cached = await self.cache.get(StorageKeys.GUEST_CART)
        if not isinstance(cached, dict) or cached.get("session_id") != session_id:
            return None
        try:
            return Cart.from_dict(cached["cart"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable guest cart snapshot: %s", e)
            await self.cache.invalidate(StorageKeys.GUEST_CART)
            return None

    async def _mutate(self, method: str, endpoint: str, json: Optional[dict] = None) -> Cart:
        headers = await self._headers()
        session_id = headers[SESSION_HEADER]
        response = await self.api.request(method, endpoint, json=json, headers=headers)
        if not _carries_cart(_data(response)):
            logger.debug("%s %s returned no cart, refetching", method, endpoint)
            return await self.fetch_cart(use_cache=False)
        return await self._cart_from_response(response, session_id)

    async def fetch_cart(self, use_cache: bool = True) -> Cart:
        if use_cache:
            cached = await self.get_cached_cart()
            if cached is not None:
                logger.debug("Using cached guest cart")
                return cached

        headers = await self._headers()
        session_id = headers[SESSION_HEADER]
        logger.debug("Fetching guest cart for session %s", sanitize_id_for_logging(session_id))
        response = await self.api.get("/cart", headers=headers)
        return await self._cart_from_response(response, session_id)

    async def add_item(self, product_id: str, quantity: int) -> Cart:
        return await self._mutate("POST", "/cart/items", {"product_id": product_id, "quantity": quantity})

    async def update_item(self, product_id: str, quantity: int) -> Cart:
        return await self._mutate("PUT", _item_path(product_id), {"quantity": quantity})

    async def remove_item(self, product_id: str) -> Cart:
        return await self._mutate("DELETE", _item_path(product_id))

    async def increment_item(self, product_id: str) -> Cart:
        return await self._mutate("POST", _item_path(product_id, "increment"))

    async def decrement_item(self, product_id: str) -> Cart:
        return await self._mutate("POST", _item_path(product_id, "decrement"))

    async def get_summary(self) -> CartSummary:
        response = await self.api.get("/cart/summary", headers=await self._headers())
        return CartSummary.from_payload(_data(response), self.kind)

    async def get_count(self) -> int:
        summary = await self.get_summary()
        return summary.total_items

    async def validate(self) -> CartValidation:
        headers = await self._headers()
        response = await self.api.get("/cart/validate", headers=headers)
        validation = CartValidation.from_payload(_data(response), self.kind, session_id=headers[SESSION_HEADER])
        if validation.cart_updated:
            await self._cache_cart(validation.cart, headers[SESSION_HEADER])
        return validation

    async def apply_coupon(self, coupon_code: str) -> Cart:
        raise UnsupportedOperation(ERROR_GUEST_COUPON)

    async def remove_coupon(self) -> Cart:
        raise UnsupportedOperation(ERROR_GUEST_COUPON)

    async def clear_local_state(self) -> None:
        """Forget the guest session and its snapshot."""
        await self.session.clear()
        await self.cache.invalidate(StorageKeys.GUEST_CART)
        logger.info("Guest cart data cleared")
