"""
cartsync

Cart and wishlist synchronization engine for the storefront client:
- cart: guest and authenticated carts behind one repository
- services: product enrichment, wishlist
- engine: create_cart_engine() wiring

Note: Imports are lazy so that importing a leaf module (config, logging)
does not pull in httpx and the Redis client.
"""

__all__ = [
    "create_cart_engine",
    "CartEngine",
    "CartEvent",
    "EventBus",
    "Settings",
    "TokenAuthService",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name in ("create_cart_engine", "CartEngine"):
        from cartsync import engine
        return getattr(engine, name)
    if name in ("CartEvent", "EventBus"):
        from cartsync import events
        return getattr(events, name)
    if name == "Settings":
        from cartsync.config import Settings
        return Settings
    if name == "TokenAuthService":
        from cartsync.auth import TokenAuthService
        return TokenAuthService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
