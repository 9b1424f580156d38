"""
Money helpers for cart prices.

The cart service sends prices as JSON numbers. They become Decimal as soon
as they enter the engine and only turn back into float when a cart is
written to the snapshot cache.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")
CURRENCY_SYMBOL = "₹"

Amount = Union[str, int, float, Decimal, None]


def to_decimal(value: Amount) -> Decimal:
    """Parse a price. None, booleans and unparseable input become 0."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return ZERO
    # repr keeps 899.5 as 899.5 rather than its binary expansion
    raw = repr(value) if isinstance(value, float) else value
    try:
        return Decimal(raw)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def round_money(value: Amount) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Amount, quantity: int) -> Decimal:
    return round_money(to_decimal(unit_price) * quantity)


def sum_money(values: Iterable[Amount]) -> Decimal:
    return round_money(sum((to_decimal(v) for v in values), ZERO))


def apply_discount(total: Amount, discount: Amount) -> Decimal:
    """Total minus discount, never below zero."""
    return round_money(max(to_decimal(total) - to_decimal(discount), ZERO))


def to_float(value: Amount) -> float:
    """For JSON at the cache boundary only."""
    return float(to_decimal(value))


def format_price(value: Amount, currency_symbol: str = CURRENCY_SYMBOL) -> str:
    """Display form, e.g. ₹1,299.00"""
    return f"{currency_symbol}{round_money(value):,.2f}"
