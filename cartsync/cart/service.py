"""Cart repository: one cart interface over the guest and authenticated backends."""
from decimal import Decimal
from typing import Optional, List

from cartsync.auth import AuthService
from cartsync.db import StorageKeys
from cartsync.errors import (
    AuthenticationRequired,
    ItemNotInCart,
    MutationFailed,
    NetworkFailure,
    PartialClearFailure,
    QuantityOutOfRange,
    ValidationError,
    classify_add_item_error,
    ERROR_CLEAR_FAILED,
    ERROR_COUPON_FAILED,
    ERROR_REMOVE_FAILED,
    ERROR_UPDATE_FAILED,
)
from cartsync.events import CartEvent, EventBus
from cartsync.logging import get_logger, sanitize_string_for_logging
from cartsync.services.products import ProductDetailEnricher
from .backends import AuthenticatedCartBackend, CartBackend, GuestCartBackend
from .models import Cart, CartLine, CartSummary, CartValidation, MIN_QUANTITY, MAX_QUANTITY, validate_quantity

logger = get_logger(__name__)


class CartRepository:
    """
    Routes every cart operation to the backend of the current identity.

    Features:
    - Identity is checked on every call, never remembered between calls
    - Compound operations (clear, increment, decrement) pick the backend
      once and use it for every request they make
    - Lines come back with product display data attached
    - Every successful mutation publishes ``cartUpdated``
    """

    def __init__(
        self,
        auth: AuthService,
        authenticated_backend: AuthenticatedCartBackend,
        guest_backend: GuestCartBackend,
        event_bus: EventBus,
        enricher: Optional[ProductDetailEnricher] = None,
        product_cache_key: str = StorageKeys.CART_PRODUCT_DETAILS,
    ) -> None:
        self.auth = auth
        self.authenticated = authenticated_backend
        self.guest = guest_backend
        self.events = event_bus
        self.enricher = enricher
        self.product_cache_key = product_cache_key

    def _resolve_backend(self) -> CartBackend:
        if self.auth.is_authenticated():
            return self.authenticated
        return self.guest

    async def _finish(self, cart: Cart) -> Cart:
        if self.enricher is not None and cart.lines:
            await self.enricher.enrich_lines(cart.lines, self.product_cache_key)
        return cart

    async def _notify(self) -> None:
        await self.events.publish(CartEvent.CART_UPDATED)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_cart(self) -> Cart:
        """Current cart with product details. Guest reads may be served from cache."""
        cart = await self._resolve_backend().fetch_cart()
        return await self._finish(cart)

    async def refresh_cart(self) -> Cart:
        """Current cart straight from the backend, replacing any guest snapshot."""
        cart = await self._resolve_backend().fetch_cart(use_cache=False)
        return await self._finish(cart)

    async def get_cart_items(self) -> List[CartLine]:
        return (await self.get_cart()).lines

    async def get_cart_item(self, product_id: str) -> Optional[CartLine]:
        return (await self.get_cart()).get_line(product_id)

    async def is_product_in_cart(self, product_id: str) -> bool:
        return await self.get_cart_item(product_id) is not None

    async def get_product_quantity(self, product_id: str) -> int:
        line = await self.get_cart_item(product_id)
        return line.quantity if line else 0

    async def get_summary(self) -> CartSummary:
        return await self._resolve_backend().get_summary()

    async def get_item_count(self) -> int:
        """Badge count; 0 when the backend can't be reached."""
        try:
            return await self._resolve_backend().get_count()
        except (NetworkFailure, AuthenticationRequired) as e:
            logger.warning("Failed to fetch cart item count: %s", type(e).__name__)
            return 0

    async def is_cart_empty(self) -> bool:
        try:
            cart = await self._resolve_backend().fetch_cart()
        except (NetworkFailure, AuthenticationRequired) as e:
            logger.warning("Failed to check if cart is empty: %s", type(e).__name__)
            return True
        return cart.is_empty

    async def get_cart_total(self) -> Decimal:
        try:
            summary = await self._resolve_backend().get_summary()
        except (NetworkFailure, AuthenticationRequired) as e:
            logger.warning("Failed to fetch cart total: %s", type(e).__name__)
            return Decimal("0")
        return summary.total_price

    async def get_cart_discount(self) -> Decimal:
        return (await self.get_summary()).discount_amount

    async def get_cart_discounted_total(self) -> Decimal:
        return (await self.get_summary()).payable_total

    async def validate_cart(self) -> CartValidation:
        """Ask the backend to re-check prices and stock of every line."""
        validation = await self._resolve_backend().validate()
        if validation.cart_updated:
            await self._notify()
        await self._finish(validation.cart)
        return validation

    def is_guest_cart(self) -> bool:
        return not self.auth.is_authenticated()

    async def get_session_id(self) -> Optional[str]:
        """Guest session id if one exists. Never creates one."""
        return await self.guest.session.get_current_session_id()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_item(self, product_id: str, quantity: int = 1) -> Cart:
        """
        Add ``quantity`` of a product.

        Raises:
            QuantityOutOfRange: quantity outside [1, 99], nothing sent
            OutOfStock / ComingSoon: backend refused the product
            MutationFailed: any other backend or transport failure
        """
        if not validate_quantity(quantity):
            raise QuantityOutOfRange(quantity, MIN_QUANTITY, MAX_QUANTITY)

        backend = self._resolve_backend()
        logger.info("Adding %s x%s to %s cart", product_id, quantity, backend.kind.value)
        try:
            cart = await backend.add_item(product_id, quantity)
        except NetworkFailure as e:
            logger.error("Failed to add %s to cart: %s", product_id, sanitize_string_for_logging(e.message))
            raise classify_add_item_error(e) from e

        await self._notify()
        return await self._finish(cart)

    async def update_item_quantity(self, product_id: str, quantity: int) -> Cart:
        if not validate_quantity(quantity):
            raise QuantityOutOfRange(quantity, MIN_QUANTITY, MAX_QUANTITY)

        backend = self._resolve_backend()
        logger.info("Setting %s quantity to %s in %s cart", product_id, quantity, backend.kind.value)
        try:
            cart = await backend.update_item(product_id, quantity)
        except NetworkFailure as e:
            raise MutationFailed(ERROR_UPDATE_FAILED) from e

        await self._notify()
        return await self._finish(cart)

    async def remove_item(self, product_id: str) -> Cart:
        backend = self._resolve_backend()
        logger.info("Removing %s from %s cart", product_id, backend.kind.value)
        try:
            cart = await backend.remove_item(product_id)
        except NetworkFailure as e:
            raise MutationFailed(ERROR_REMOVE_FAILED) from e

        await self._notify()
        return await self._finish(cart)

    async def increment_item(self, product_id: str) -> Cart:
        """
        Add one unit using the server-side increment.

        A line already at 99 is rejected with QuantityOutOfRange instead of
        being clamped.
        """
        backend = self._resolve_backend()
        line = await self._require_line(backend, product_id)
        if line.quantity >= MAX_QUANTITY:
            raise QuantityOutOfRange(line.quantity + 1, MIN_QUANTITY, MAX_QUANTITY)

        try:
            cart = await backend.increment_item(product_id)
        except NetworkFailure as e:
            raise MutationFailed(ERROR_UPDATE_FAILED) from e

        await self._notify()
        return await self._finish(cart)

    async def decrement_item(self, product_id: str) -> Cart:
        """Remove one unit; the last unit removes the line."""
        backend = self._resolve_backend()
        line = await self._require_line(backend, product_id)

        try:
            if line.quantity <= MIN_QUANTITY:
                cart = await backend.remove_item(product_id)
            else:
                cart = await backend.decrement_item(product_id)
        except NetworkFailure as e:
            raise MutationFailed(ERROR_UPDATE_FAILED) from e

        await self._notify()
        return await self._finish(cart)

    async def clear_cart(self) -> Cart:
        """
        Remove every line, one request per line.

        Raises:
            PartialClearFailure: some lines were removed, others were not
            MutationFailed: nothing could be removed
        """
        backend = self._resolve_backend()
        try:
            cart = await backend.fetch_cart(use_cache=False)
        except NetworkFailure as e:
            raise MutationFailed(ERROR_CLEAR_FAILED) from e

        if cart.is_empty:
            return cart

        removed: List[str] = []
        failed: dict[str, Exception] = {}
        for product_id in cart.product_ids:
            try:
                cart = await backend.remove_item(product_id)
                removed.append(product_id)
            except (NetworkFailure, AuthenticationRequired) as e:
                logger.warning("Failed to remove %s while clearing cart: %s", product_id, type(e).__name__)
                failed[product_id] = e

        if removed:
            await self._notify()

        if failed:
            if removed:
                raise PartialClearFailure(removed, failed)
            raise MutationFailed(ERROR_CLEAR_FAILED) from next(iter(failed.values()))

        logger.info("Cleared %d line(s) from %s cart", len(removed), backend.kind.value)
        return cart

    async def apply_coupon(self, coupon_code: str) -> Cart:
        """
        Apply a coupon to the signed-in user's cart.

        Raises:
            UnsupportedOperation: guest carts have no server-side discounts
        """
        coupon_code = (coupon_code or "").strip()
        if not coupon_code:
            raise ValidationError("Coupon code is required")

        backend = self._resolve_backend()
        logger.info("Applying coupon %s", sanitize_string_for_logging(coupon_code, max_length=20))
        try:
            cart = await backend.apply_coupon(coupon_code)
        except NetworkFailure as e:
            # 4xx here is usually "invalid coupon", worth showing as-is
            message = e.message if e.status_code and e.status_code < 500 else ERROR_COUPON_FAILED
            raise MutationFailed(message) from e

        await self._notify()
        return await self._finish(cart)

    async def remove_coupon(self) -> Cart:
        backend = self._resolve_backend()
        try:
            cart = await backend.remove_coupon()
        except NetworkFailure as e:
            raise MutationFailed(ERROR_COUPON_FAILED) from e

        await self._notify()
        return await self._finish(cart)

    async def _require_line(self, backend: CartBackend, product_id: str) -> CartLine:
        try:
            cart = await backend.fetch_cart()
        except NetworkFailure as e:
            raise MutationFailed(ERROR_UPDATE_FAILED) from e
        line = cart.get_line(product_id)
        if line is None:
            raise ItemNotInCart(product_id)
        return line
