"""
Tests for cart and product models
"""

from decimal import Decimal

import pytest

from cartsync.cart.models import (
    Cart,
    CartKind,
    CartLine,
    CartSummary,
    CartValidation,
    MAX_QUANTITY,
    normalize_lines,
    validate_quantity,
)
from cartsync.errors import (
    ComingSoon,
    MutationFailed,
    NetworkFailure,
    OutOfStock,
    classify_add_item_error,
)
from cartsync.services.models import ProductSummary
from cartsync.services.money import format_price, round_money


class TestValidateQuantity:
    """Quantity bounds."""

    @pytest.mark.parametrize("quantity", [1, 2, 50, 98, 99])
    def test_in_range(self, quantity):
        assert validate_quantity(quantity) is True

    @pytest.mark.parametrize("quantity", [-5, -1, 0, 100, 1000])
    def test_out_of_range(self, quantity):
        assert validate_quantity(quantity) is False

    @pytest.mark.parametrize("quantity", [True, 1.0, "2", None])
    def test_non_integers_rejected(self, quantity):
        assert validate_quantity(quantity) is False

    def test_matches_bounds_for_every_integer_near_range(self):
        for q in range(-10, 120):
            assert validate_quantity(q) == (1 <= q <= 99)


class TestCartLine:
    """Tests for CartLine dataclass."""

    def test_total_price_calculation(self):
        """unit_price x quantity with exact decimals."""
        line = CartLine(product_id="p2", quantity=3, unit_price=899.5)
        assert line.unit_price == Decimal("899.5")
        assert line.total_price == Decimal("2698.50")

    def test_to_dict_and_from_dict(self):
        line = CartLine(
            product_id="p1",
            quantity=2,
            unit_price="499",
            id="line-p1",
            product=ProductSummary(id="p1", name="Rice", price=499, image_url="https://cdn.test/p1.jpg"),
        )

        restored = CartLine.from_dict(line.to_dict())
        assert restored.product_id == "p1"
        assert restored.quantity == 2
        assert restored.total_price == Decimal("998.00")
        assert restored.product.image_url == "https://cdn.test/p1.jpg"


class TestNormalizeLines:
    """Backend lines are normalized into the cart invariants."""

    def test_drops_zero_and_negative_quantities(self):
        lines = normalize_lines(
            [
                {"product_id": "p1", "quantity": 0, "unit_price": 10},
                {"product_id": "p2", "quantity": -1, "unit_price": 10},
                {"product_id": "p3", "quantity": 1, "unit_price": 10},
            ]
        )
        assert [line.product_id for line in lines] == ["p3"]

    def test_merges_duplicate_products(self):
        lines = normalize_lines(
            [
                {"product_id": "p1", "quantity": 2, "unit_price": 10},
                {"product_id": "p2", "quantity": 1, "unit_price": 5},
                {"product_id": "p1", "quantity": 3, "unit_price": 10},
            ]
        )
        assert [(line.product_id, line.quantity) for line in lines] == [("p1", 5), ("p2", 1)]

    def test_merged_quantity_is_capped(self):
        lines = normalize_lines(
            [
                {"product_id": "p1", "quantity": 60, "unit_price": 10},
                {"product_id": "p1", "quantity": 60, "unit_price": 10},
            ]
        )
        assert lines[0].quantity == MAX_QUANTITY

    def test_skips_malformed_lines(self):
        lines = normalize_lines(
            [
                {"quantity": 1},
                "not-a-line",
                {"product_id": "p1", "quantity": "many"},
                {"product_id": "p2", "quantity": 1, "unit_price": 1},
            ]
        )
        assert [line.product_id for line in lines] == ["p2"]

    def test_keeps_line_with_invalid_product_details(self):
        lines = normalize_lines(
            [
                {"product_id": "p1", "quantity": 2, "unit_price": 499, "product": {"id": "p1", "name": None}},
                {"product_id": "p2", "quantity": 1, "unit_price": 5, "product": {"id": "p2", "name": "Oil"}},
            ]
        )

        assert [(line.product_id, line.quantity) for line in lines] == [("p1", 2), ("p2", 1)]
        assert lines[0].product is None
        assert lines[1].product.name == "Oil"


class TestCart:
    """Tests for Cart dataclass."""

    def _payload(self):
        return {
            "cart": {
                "id": "cart-1",
                "user_id": "user-1",
                "items": [
                    {"id": "l1", "product_id": "p1", "quantity": 2, "unit_price": 499.0},
                    {"id": "l2", "product_id": "p2", "quantity": 1, "unit_price": 899.5},
                ],
                "final_price": 1847.5,
            },
            "discount_amount": 50,
        }

    def test_from_wrapped_payload(self):
        cart = Cart.from_payload(self._payload(), CartKind.AUTHENTICATED)

        assert cart.kind is CartKind.AUTHENTICATED
        assert cart.owner_id == "user-1"
        assert cart.total_items == 3
        assert cart.items_count == 2
        assert cart.total_price == Decimal("1897.50")
        assert cart.discount_amount == Decimal("50")
        assert cart.payable_total == Decimal("1847.50")

    def test_from_bare_guest_payload(self):
        cart = Cart.from_payload(
            {"items": [{"product_id": "p1", "quantity": 1, "unit_price": 10}]},
            CartKind.GUEST,
            session_id="guest_1_abc",
        )
        assert cart.is_guest
        assert cart.owner_id == "guest_1_abc"
        assert cart.product_ids == ["p1"]

    def test_payable_total_falls_back_to_discount(self):
        cart = Cart(
            kind=CartKind.AUTHENTICATED,
            lines=[CartLine(product_id="p1", quantity=2, unit_price=100)],
            discount_amount=25,
        )
        assert cart.payable_total == Decimal("175.00")

    def test_empty_cart(self):
        cart = Cart.empty(CartKind.GUEST)
        assert cart.is_empty
        assert cart.total_items == 0
        assert cart.total_price == Decimal("0.00")

    def test_snapshot_round_trip_keeps_kind_and_lines(self):
        cart = Cart.from_payload(self._payload(), CartKind.AUTHENTICATED)
        restored = Cart.from_dict(cart.to_dict())

        assert restored.kind is CartKind.AUTHENTICATED
        assert restored.product_ids == ["p1", "p2"]
        assert restored.total_price == cart.total_price
        assert restored.payable_total == cart.payable_total

    def test_get_line(self):
        cart = Cart.from_payload(self._payload(), CartKind.AUTHENTICATED)
        assert cart.get_line("p2").quantity == 1
        assert cart.get_line("missing") is None


class TestSummaryAndValidation:
    def test_summary_from_payload(self):
        summary = CartSummary.from_payload(
            {"total_items": 3, "total_price": 1000, "discount_amount": 100, "has_expired": True},
            CartKind.GUEST,
        )
        assert summary.total_items == 3
        assert summary.payable_total == Decimal("900.00")
        assert summary.has_expired is True

    def test_validation_from_payload(self):
        validation = CartValidation.from_payload(
            {
                "cart": {"items": [{"product_id": "p1", "quantity": 1, "unit_price": 520}]},
                "cart_updated": True,
                "validation_issues": [
                    {"product_id": "p1", "issue": "price_changed", "old_price": 499, "new_price": 520},
                ],
            },
            CartKind.AUTHENTICATED,
        )
        assert validation.cart_updated is True
        assert validation.is_valid is False
        assert validation.issues[0].new_price == Decimal("520")


class TestProductSummary:
    def test_primary_image_prefers_flagged_image(self):
        product = ProductSummary.model_validate(
            {
                "id": "p2",
                "price": "899.5",
                "images": [
                    {"image_url": "side.jpg"},
                    {"image_url": "front.jpg", "is_primary": True},
                    None,
                ],
                "unknown_field": "ignored",
            }
        )
        assert product.price == Decimal("899.5")
        assert product.has_image
        assert product.primary_image == "front.jpg"

    def test_no_image(self):
        product = ProductSummary(id="p4", name="Mangoes")
        assert not product.has_image
        assert product.primary_image is None


class TestAddItemErrorClassification:
    """Structured error codes decide; free text is a fallback."""

    def test_out_of_stock_code(self):
        assert isinstance(classify_add_item_error(NetworkFailure("x", 400, "OUT_OF_STOCK")), OutOfStock)

    def test_coming_soon_code(self):
        assert isinstance(classify_add_item_error(NetworkFailure("x", 400, "COMING_SOON")), ComingSoon)

    def test_unknown_code_ignores_message_text(self):
        error = classify_add_item_error(NetworkFailure("stock sync running", 400, "RATE_LIMITED"))
        assert type(error) is MutationFailed

    def test_legacy_message_fallback(self):
        assert isinstance(classify_add_item_error(NetworkFailure("Product is out of stock", 400)), OutOfStock)
        assert isinstance(classify_add_item_error(NetworkFailure("Coming soon!", 400)), ComingSoon)
        assert type(classify_add_item_error(NetworkFailure("boom", 500))) is MutationFailed


def test_money_helpers():
    assert round_money("2.005") == Decimal("2.01")
    assert format_price(1299) == "₹1,299.00"
