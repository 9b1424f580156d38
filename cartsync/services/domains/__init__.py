"""Domain services built on the API client."""
from .wishlist import WishlistItem, WishlistRepository

__all__ = [
    "WishlistItem",
    "WishlistRepository",
]
