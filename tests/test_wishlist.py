"""
Tests for WishlistRepository
"""

import pytest

from cartsync.errors import AuthenticationRequired, MutationFailed, PartialClearFailure
from cartsync.services.domains.wishlist import WishlistItem, WishlistRepository


@pytest.fixture
def wishlist(engine, auth):
    auth.login("user-token", {"id": "user-1"})
    return engine.wishlist


@pytest.fixture
def checking_wishlist(api, auth, event_bus):
    auth.login("user-token")
    return WishlistRepository(api, auth, event_bus, check_enabled=True)


def test_wishlist_item_from_dict():
    item = WishlistItem.from_dict(
        {"id": "fav-1", "product_id": "p1", "created_at": "2025-01-01T00:00:00Z", "product": {"id": "p1", "name": "Rice"}}
    )
    assert item.product_id == "p1"
    assert item.product.name == "Rice"


class TestWishlistRepository:
    @pytest.mark.asyncio
    async def test_requires_authentication(self, engine, fake_api):
        with pytest.raises(AuthenticationRequired):
            await engine.wishlist.get_wishlist()
        with pytest.raises(AuthenticationRequired):
            await engine.wishlist.add_item("p1")
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_rejected_token_is_authentication_required(self, engine, auth, fake_api, events_seen):
        auth.login("revoked-token")

        with pytest.raises(AuthenticationRequired):
            await engine.wishlist.get_wishlist()
        with pytest.raises(AuthenticationRequired):
            await engine.wishlist.add_item("p1")

        assert len(fake_api.calls("POST", "/favorites")) == 1
        assert events_seen == []

    @pytest.mark.asyncio
    async def test_add_and_list(self, wishlist, fake_api):
        items = await wishlist.add_item("p1")

        assert [item.product_id for item in items] == ["p1"]
        assert fake_api.calls("POST", "/favorites")[0].headers["Authorization"] == "Bearer user-token"
        assert items[0].product.image_url == "https://cdn.test/p1.jpg"

    @pytest.mark.asyncio
    async def test_adding_twice_is_harmless(self, wishlist):
        await wishlist.add_item("p1")
        items = await wishlist.add_item("p1")
        assert [item.product_id for item in items] == ["p1"]

    @pytest.mark.asyncio
    async def test_remove(self, wishlist):
        await wishlist.add_item("p1")
        await wishlist.add_item("p2")

        items = await wishlist.remove_item("p1")
        assert [item.product_id for item in items] == ["p2"]
        assert await wishlist.get_count() == 1

    @pytest.mark.asyncio
    async def test_remove_missing_fails(self, wishlist):
        with pytest.raises(MutationFailed):
            await wishlist.remove_item("p9")

    @pytest.mark.asyncio
    async def test_mutations_publish_wishlist_updated(self, wishlist, events_seen):
        await wishlist.add_item("p1")
        await wishlist.remove_item("p1")
        assert events_seen == ["wishlistUpdated", "wishlistUpdated"]

    @pytest.mark.asyncio
    async def test_membership_derived_from_list_by_default(self, wishlist, fake_api):
        await wishlist.add_item("p1")

        assert await wishlist.is_in_wishlist("p1") is True
        assert await wishlist.is_in_wishlist("p2") is False
        assert not any(r.url.path.endswith("/check") for r in fake_api.requests)

    @pytest.mark.asyncio
    async def test_membership_check_endpoint_when_enabled(self, checking_wishlist, fake_api):
        await checking_wishlist.add_item("p2")

        assert await checking_wishlist.is_in_wishlist("p2") is True
        assert await checking_wishlist.is_in_wishlist("p1") is False
        assert len(fake_api.calls("GET", "/favorites/p2/check")) == 1

    @pytest.mark.asyncio
    async def test_toggle(self, wishlist):
        assert await wishlist.toggle("p1") is True
        assert await wishlist.is_in_wishlist("p1")
        assert await wishlist.toggle("p1") is False
        assert not await wishlist.is_in_wishlist("p1")

    @pytest.mark.asyncio
    async def test_clear(self, wishlist):
        await wishlist.add_item("p1")
        await wishlist.add_item("p2")

        assert await wishlist.clear() == []
        assert await wishlist.get_wishlist() == []

    @pytest.mark.asyncio
    async def test_clear_partial_failure(self, wishlist, fake_api):
        await wishlist.add_item("p1")
        await wishlist.add_item("p2")
        fake_api.fail("DELETE", "/favorites/p2", status=500)

        with pytest.raises(PartialClearFailure) as exc_info:
            await wishlist.clear()
        assert exc_info.value.removed == ["p1"]

    @pytest.mark.asyncio
    async def test_get_wishlist_item(self, wishlist):
        await wishlist.add_item("p2")
        item = await wishlist.get_wishlist_item("p2")
        assert item.id == "fav-p2"
        assert await wishlist.get_wishlist_item("p1") is None


class TestMoveToCart:
    @pytest.mark.asyncio
    async def test_moves_with_quantity_one(self, engine, wishlist, fake_api, events_seen):
        await wishlist.add_item("p1")
        events_seen.clear()

        cart = await wishlist.move_to_cart("p1", engine.cart)

        assert cart.get_line("p1").quantity == 1
        assert await wishlist.get_wishlist() == []
        assert fake_api.user_items() == {"p1": 1}
        assert events_seen == ["cartUpdated", "wishlistUpdated"]

    @pytest.mark.asyncio
    async def test_failed_add_keeps_wishlist(self, engine, wishlist):
        await wishlist.add_item("p3")

        with pytest.raises(MutationFailed):
            await wishlist.move_to_cart("p3", engine.cart)

        assert [item.product_id for item in await wishlist.get_wishlist()] == ["p3"]

    @pytest.mark.asyncio
    async def test_not_in_wishlist(self, engine, wishlist):
        with pytest.raises(MutationFailed):
            await wishlist.move_to_cart("p1", engine.cart)
