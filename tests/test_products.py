"""
Tests for product detail enrichment
"""

import pytest

from cartsync.cache import TTLCache
from cartsync.cart.models import CartLine
from cartsync.db import StorageKeys, TTL
from cartsync.errors import NetworkFailure
from cartsync.services.models import ProductSummary
from cartsync.services.products import ProductCatalogClient, ProductDetailEnricher


@pytest.fixture
def product_cache(store):
    return TTLCache(store, TTL.PRODUCT)


@pytest.fixture
def enricher(api, product_cache):
    return ProductDetailEnricher(ProductCatalogClient(api), product_cache)


class TestProductCatalogClient:
    @pytest.mark.asyncio
    async def test_get_product(self, api):
        product = await ProductCatalogClient(api).get_product("p2")

        assert product.id == "p2"
        assert product.primary_image == "https://cdn.test/p2.jpg"

    @pytest.mark.asyncio
    async def test_unknown_product(self, api):
        with pytest.raises(NetworkFailure) as exc_info:
            await ProductCatalogClient(api).get_product("nope")
        assert exc_info.value.status_code == 404


class TestProductDetailEnricher:
    """Cache first, network for the rest, failures dropped."""

    @pytest.mark.asyncio
    async def test_fetches_only_products_without_images(self, enricher, fake_api):
        refs = [
            {"product_id": "p1", "product": {"id": "p1", "name": "Rice", "image_url": "https://cdn.test/own.jpg"}},
            {"product_id": "p2", "product": {"id": "p2", "name": "Oil"}},
            {"product_id": "p3"},
        ]

        details = await enricher.resolve(refs, StorageKeys.CART_PRODUCT_DETAILS)

        assert set(details) == {"p1", "p2", "p3"}
        assert details["p1"].image_url == "https://cdn.test/own.jpg"
        assert details["p2"].has_image
        fetched = sorted(r.url.path for r in fake_api.calls("GET"))
        assert fetched == ["/api/v1/products/p2", "/api/v1/products/p3"]

    @pytest.mark.asyncio
    async def test_writes_through_to_both_caches(self, enricher, product_cache):
        await enricher.resolve([{"product_id": "p1"}], StorageKeys.CART_PRODUCT_DETAILS)

        assert (await product_cache.get("product_p1"))["name"] == "Basmati Rice 5kg"
        aggregate = await product_cache.get(StorageKeys.CART_PRODUCT_DETAILS)
        assert set(aggregate) == {"p1"}

    @pytest.mark.asyncio
    async def test_second_resolve_served_from_cache(self, enricher, fake_api):
        await enricher.resolve([{"product_id": "p1"}, {"product_id": "p2"}], StorageKeys.CART_PRODUCT_DETAILS)
        fake_api.requests.clear()

        details = await enricher.resolve([{"product_id": "p2"}], StorageKeys.CART_PRODUCT_DETAILS)

        assert set(details) == {"p2"}
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_per_product_cache_shared_between_contexts(self, enricher, fake_api):
        await enricher.resolve([{"product_id": "p1"}], StorageKeys.CART_PRODUCT_DETAILS)
        fake_api.requests.clear()

        details = await enricher.resolve([{"product_id": "p1"}], StorageKeys.WISHLIST_PRODUCT_DETAILS)

        assert details["p1"].name == "Basmati Rice 5kg"
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_product_out(self, enricher, fake_api):
        fake_api.fail("GET", "/products/p2", status=500, times=5)

        details = await enricher.resolve(
            [{"product_id": "p1"}, {"product_id": "p2"}, {"product_id": "ghost"}],
            StorageKeys.CART_PRODUCT_DETAILS,
        )

        assert set(details) == {"p1"}

    @pytest.mark.asyncio
    async def test_enrich_lines_in_place(self, enricher):
        lines = [
            CartLine(product_id="p1", quantity=1, unit_price=499),
            CartLine(product_id="p2", quantity=2, unit_price=899.5, product=ProductSummary(id="p2", name="Oil")),
        ]

        await enricher.enrich_lines(lines, StorageKeys.CART_PRODUCT_DETAILS)

        assert lines[0].product.name == "Basmati Rice 5kg"
        assert lines[1].product.primary_image == "https://cdn.test/p2.jpg"

    @pytest.mark.asyncio
    async def test_empty_input(self, enricher, fake_api):
        assert await enricher.resolve([], StorageKeys.CART_PRODUCT_DETAILS) == {}
        assert fake_api.requests == []
