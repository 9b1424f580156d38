"""
Cart engine errors.

Message constants are shared by every backend so the same failure reads the
same regardless of which identity produced it.
"""

from typing import Optional

# Cart errors
ERROR_OUT_OF_STOCK = "Product is currently out of stock"
ERROR_COMING_SOON = "Product is coming soon"
ERROR_ADD_FAILED = "Failed to add item to cart. Please try again later."
ERROR_UPDATE_FAILED = "Failed to update cart item quantity. Please try again later."
ERROR_REMOVE_FAILED = "Failed to remove item from cart. Please try again later."
ERROR_CLEAR_FAILED = "Failed to clear cart. Please try again later."
ERROR_COUPON_FAILED = "Failed to apply coupon. Please try again later."
ERROR_ITEM_NOT_IN_CART = "Product is not in the cart"
ERROR_GUEST_COUPON = "Coupons are only available for signed-in shoppers"

# Quantity errors
ERROR_QUANTITY_RANGE = "Quantity must be between {min} and {max}"

# Auth errors
ERROR_LOGIN_REQUIRED = "Please login to continue"

# Migration errors
ERROR_MIGRATION_FAILED = "Failed to migrate cart. Please try again later."

# Wishlist errors
ERROR_WISHLIST_FAILED = "Failed to update wishlist. Please try again later."

# Backend error codes that identify stock problems on add-to-cart
OUT_OF_STOCK_CODES = frozenset({"OUT_OF_STOCK", "INSUFFICIENT_STOCK"})
COMING_SOON_CODES = frozenset({"COMING_SOON", "PRODUCT_NOT_AVAILABLE"})


class CartSyncError(Exception):
    """Base class for every error raised by the engine."""


class AuthenticationRequired(CartSyncError):
    """Operation needs a signed-in user (wishlist, authenticated cart)."""

    def __init__(self, message: str = ERROR_LOGIN_REQUIRED) -> None:
        super().__init__(message)


class ValidationError(CartSyncError):
    """Caller passed arguments the engine refuses to send to the network."""


class QuantityOutOfRange(ValidationError):
    """Quantity outside the allowed [min, max] range."""

    def __init__(self, quantity: int, minimum: int, maximum: int) -> None:
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(ERROR_QUANTITY_RANGE.format(min=minimum, max=maximum))


class NetworkFailure(CartSyncError):
    """Transport error or non-2xx response from the cart service.

    ``status_code`` is None for transport-level failures (DNS, timeouts).
    ``code`` is the structured ``error_code`` the backend sent, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code in (401, 403)


class MutationFailed(CartSyncError):
    """A cart mutation was rejected or could not reach the backend."""


class OutOfStock(MutationFailed):
    def __init__(self, message: str = ERROR_OUT_OF_STOCK) -> None:
        super().__init__(message)


class ComingSoon(MutationFailed):
    def __init__(self, message: str = ERROR_COMING_SOON) -> None:
        super().__init__(message)


class ItemNotInCart(MutationFailed):
    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(ERROR_ITEM_NOT_IN_CART)


class UnsupportedOperation(CartSyncError):
    """Operation not available for the current cart identity."""


class CacheCorruption(CartSyncError):
    """Persisted cache entry could not be decoded. Never escapes TTLCache."""


class MigrationFailure(CartSyncError):
    """Guest cart could not be merged into the user's cart."""

    def __init__(self, message: str = ERROR_MIGRATION_FAILED) -> None:
        super().__init__(message)


class PartialClearFailure(CartSyncError):
    """Iterate-and-remove clear stopped with some lines removed and some not.

    ``removed`` lists the product ids that were removed, ``failed`` maps the
    product ids that are still present to the error that kept them there.
    """

    def __init__(self, removed: list[str], failed: dict[str, Exception]) -> None:
        self.removed = removed
        self.failed = failed
        super().__init__(
            f"Cleared {len(removed)} item(s), {len(failed)} item(s) could not be removed"
        )


def classify_add_item_error(error: NetworkFailure) -> MutationFailed:
    """Map a failed add-to-cart response onto the typed failure the UI shows.

    The backend's ``error_code`` decides. Older deployments send only free
    text, so a substring match on the message is kept as a fallback; it
    breaks as soon as the wording changes.
    """
    if error.code:
        code = error.code.upper()
        if code in OUT_OF_STOCK_CODES:
            return OutOfStock()
        if code in COMING_SOON_CODES:
            return ComingSoon()
        return MutationFailed(ERROR_ADD_FAILED)

    text = (error.message or "").lower()
    if "coming soon" in text:
        return ComingSoon()
    if "stock" in text:
        return OutOfStock()
    return MutationFailed(ERROR_ADD_FAILED)
