"""
Product Detail Enrichment

Cart lines and wishlist items reference products by id and often arrive
without display data. This module fills the gaps:

1. aggregate map cached per caller (cart page, wishlist page, ...)
2. product data already on the item, when it has an image
3. per-product cache (24h)
4. GET /products/{id}, all missing ids in parallel

A product that cannot be fetched is left out of the result; the rest of
the batch is unaffected.
"""

import asyncio
from typing import Any, Iterable, Optional
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from cartsync.cache import TTLCache
from cartsync.db import StorageKeys
from cartsync.errors import NetworkFailure
from cartsync.http import ApiClient
from cartsync.logging import get_logger
from cartsync.services.models import ProductSummary, product_has_image

logger = get_logger(__name__)


class ProductCatalogClient:
    """Read-only access to the product catalog."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def get_product(self, product_id: str) -> ProductSummary:
        response = await self.api.get(f"/products/{quote(str(product_id), safe='')}")
        data = response.get("data")
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            data = data["product"]
        if not isinstance(data, dict) or not data:
            raise NetworkFailure("Product not found", status_code=404)

        product = ProductSummary.model_validate(data)
        if not product.id:
            product = product.model_copy(update={"id": str(product_id)})
        return product


def _ref(item: Any) -> tuple[str, Optional[ProductSummary]]:
    """(product_id, product) from a CartLine, WishlistItem, or plain dict."""
    if isinstance(item, dict):
        product_id = item.get("product_id")
        product = item.get("product")
        if isinstance(product, dict):
            try:
                product = ProductSummary.model_validate(product)
            except PydanticValidationError:
                product = None
    else:
        product_id = getattr(item, "product_id", None)
        product = getattr(item, "product", None)
    if not isinstance(product, ProductSummary):
        product = None
    return str(product_id or ""), product


class ProductDetailEnricher:
    """Resolves ProductSummary records for lists of product references."""

    def __init__(self, catalog: ProductCatalogClient, cache: TTLCache) -> None:
        self.catalog = catalog
        self.cache = cache

    async def resolve(self, items: Iterable[Any], cache_key: str) -> dict[str, ProductSummary]:
        """
        Map every resolvable product id in ``items`` to its ProductSummary.

        Args:
            items: objects or dicts with ``product_id`` and optional ``product``
            cache_key: aggregate cache key of the calling view

        Returns:
            product_id -> ProductSummary for every input that could be resolved
        """
        refs = [_ref(item) for item in items]
        refs = [(product_id, product) for product_id, product in refs if product_id]
        if not refs:
            return {}

        details = await self._load_aggregate(cache_key)
        changed = False

        # Items that already carry renderable data need no lookup
        for product_id, product in refs:
            if product_id not in details and product_has_image(product):
                details[product_id] = product
                await self.cache.set(StorageKeys.product_key(product_id), product.to_cache())
                changed = True

        missing = list(dict.fromkeys(product_id for product_id, _ in refs if product_id not in details))
        if missing:
            logger.info("Fetching missing product details for %s: %d product(s)", cache_key, len(missing))
            results = await asyncio.gather(*(self._load_product(product_id) for product_id in missing))
            for product_id, product in zip(missing, results):
                if product is not None:
                    details[product_id] = product
                    changed = True

        if changed:
            await self.cache.set(
                cache_key,
                {product_id: product.to_cache() for product_id, product in details.items()},
            )

        requested = {product_id for product_id, _ in refs}
        return {product_id: product for product_id, product in details.items() if product_id in requested}

    async def enrich_lines(self, lines: Iterable[Any], cache_key: str) -> None:
        """Attach resolved products to each line in place."""
        lines = list(lines)
        details = await self.resolve(lines, cache_key)
        for line in lines:
            product = details.get(line.product_id)
            if product is not None:
                line.product = product

    async def _load_aggregate(self, cache_key: str) -> dict[str, ProductSummary]:
        cached = await self.cache.get(cache_key)
        if not isinstance(cached, dict):
            return {}

        details: dict[str, ProductSummary] = {}
        for product_id, data in cached.items():
            try:
                details[product_id] = ProductSummary.model_validate(data)
            except PydanticValidationError:
                logger.warning("Dropping unreadable cached product %s", product_id)
        return details

    async def _load_product(self, product_id: str) -> Optional[ProductSummary]:
        key = StorageKeys.product_key(product_id)
        cached = await self.cache.get(key)
        if isinstance(cached, dict):
            try:
                return ProductSummary.model_validate(cached)
            except PydanticValidationError:
                await self.cache.invalidate(key)

        try:
            product = await self.catalog.get_product(product_id)
        except (NetworkFailure, PydanticValidationError) as e:
            logger.warning("Failed to fetch product %s: %s", product_id, type(e).__name__)
            return None

        await self.cache.set(key, product.to_cache())
        return product
