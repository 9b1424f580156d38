"""Cart models with Decimal-based pricing.

Both backends return carts in slightly different envelopes. Everything is
normalized into one Cart tagged with the identity that owns it.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, List

from pydantic import ValidationError as PydanticValidationError

from cartsync.logging import get_logger
from cartsync.services.models import ProductSummary
from cartsync.services.money import apply_discount, line_total, round_money, sum_money, to_decimal, to_float

logger = get_logger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 99


def validate_quantity(quantity: Any) -> bool:
    """True iff quantity is an int in [MIN_QUANTITY, MAX_QUANTITY]."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return False
    return MIN_QUANTITY <= quantity <= MAX_QUANTITY


def _first_present(*values):
    for value in values:
        if value is not None:
            return value
    return None


class CartKind(str, Enum):
    """Which identity a cart belongs to."""
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


@dataclass
class CartLine:
    """Single product line in the cart."""
    product_id: str
    quantity: int
    unit_price: Decimal
    id: str = ""
    product: Optional[ProductSummary] = None

    def __post_init__(self):
        self.unit_price = to_decimal(self.unit_price)

    @property
    def total_price(self) -> Decimal:
        """unit_price x quantity."""
        return line_total(self.unit_price, self.quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "product": self.product.to_cache() if self.product else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        """Build from a cached line or a raw backend line."""
        product_id = str(data["product_id"])
        return cls(
            id=str(data.get("id") or ""),
            product_id=product_id,
            quantity=int(data["quantity"]),
            unit_price=to_decimal(data.get("unit_price")),
            product=_embedded_product(data.get("product"), product_id),
        )


def _embedded_product(product_data: Any, product_id: str) -> Optional[ProductSummary]:
    """Display details shipped with a line; unreadable ones are left to enrichment."""
    if not isinstance(product_data, dict):
        return None
    try:
        return ProductSummary.model_validate(product_data)
    except PydanticValidationError as e:
        logger.warning("Ignoring invalid product details on cart line %s: %s", product_id, e.error_count())
        return None


def normalize_lines(raw_items: List[dict]) -> List[CartLine]:
    """
    Parse backend lines, keeping the cart invariants.

    Lines with quantity <= 0 are dropped. Duplicate product ids are merged
    into the first occurrence, quantities summed and capped at MAX_QUANTITY.
    """
    lines: List[CartLine] = []
    by_product: dict[str, CartLine] = {}

    for raw in raw_items or []:
        if not isinstance(raw, dict) or not raw.get("product_id"):
            continue
        try:
            line = CartLine.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed cart line: %s", e)
            continue

        if line.quantity <= 0:
            continue

        existing = by_product.get(line.product_id)
        if existing is not None:
            logger.warning("Merging duplicate cart lines for product %s", line.product_id)
            existing.quantity = min(existing.quantity + line.quantity, MAX_QUANTITY)
            if existing.product is None:
                existing.product = line.product
            continue

        by_product[line.product_id] = line
        lines.append(line)

    return lines


@dataclass
class Cart:
    """Shopping cart for one identity, lines in insertion order."""
    kind: CartKind
    lines: List[CartLine] = field(default_factory=list)
    id: str = ""
    owner_id: str = ""  # user id, or guest session id
    discount_amount: Decimal = Decimal("0")
    discounted_total: Optional[Decimal] = None
    coupon_code: Optional[str] = None
    updated_at: str = ""

    def __post_init__(self):
        self.kind = CartKind(self.kind)
        self.discount_amount = to_decimal(self.discount_amount)
        if self.discounted_total is not None:
            self.discounted_total = to_decimal(self.discounted_total)
        if not self.updated_at:
            self.updated_at = datetime.now(timezone.utc).isoformat()

    @property
    def is_guest(self) -> bool:
        return self.kind is CartKind.GUEST

    @property
    def total_items(self) -> int:
        """Sum of quantities."""
        return sum(line.quantity for line in self.lines)

    @property
    def items_count(self) -> int:
        """Number of distinct lines."""
        return len(self.lines)

    @property
    def total_price(self) -> Decimal:
        return sum_money(line.total_price for line in self.lines)

    @property
    def payable_total(self) -> Decimal:
        """Total after discount; falls back to total_price - discount_amount."""
        if self.discounted_total is not None:
            return round_money(self.discounted_total)
        return apply_discount(self.total_price, self.discount_amount)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def product_ids(self) -> List[str]:
        return [line.product_id for line in self.lines]

    def get_line(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def to_dict(self) -> dict:
        """Serialize for the guest cart snapshot cache."""
        return {
            "kind": self.kind.value,
            "id": self.id,
            "owner_id": self.owner_id,
            "lines": [line.to_dict() for line in self.lines],
            "total_items": self.total_items,
            "total_price": to_float(self.total_price),
            "discount_amount": str(self.discount_amount),
            "discounted_total": None if self.discounted_total is None else str(self.discounted_total),
            "coupon_code": self.coupon_code,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """Create from a cached snapshot."""
        return cls(
            kind=CartKind(data["kind"]),
            lines=normalize_lines(data.get("lines", [])),
            id=data.get("id", ""),
            owner_id=data.get("owner_id", ""),
            discount_amount=to_decimal(data.get("discount_amount")),
            discounted_total=data.get("discounted_total"),
            coupon_code=data.get("coupon_code"),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def from_payload(cls, payload: dict, kind: CartKind, session_id: Optional[str] = None) -> "Cart":
        """
        Normalize a backend response body's ``data`` into a Cart.

        Accepts the wrapped shape ``{"cart": {...}, "discount_amount": ..,
        "discounted_total": .., "session_id": ..}`` and a bare cart object.
        """
        payload = payload or {}
        raw = payload.get("cart") if isinstance(payload.get("cart"), dict) else payload

        kind = CartKind(kind)
        if kind is CartKind.GUEST:
            owner_id = payload.get("session_id") or session_id or ""
        else:
            owner_id = raw.get("user_id") or ""

        return cls(
            kind=kind,
            lines=normalize_lines(raw.get("items") or []),
            id=str(raw.get("id") or ""),
            owner_id=str(owner_id),
            discount_amount=to_decimal(_first_present(payload.get("discount_amount"), raw.get("discount_amount"))),
            discounted_total=_first_present(
                payload.get("discounted_total"),
                raw.get("discounted_total"),
                raw.get("final_price"),
            ),
            coupon_code=_first_present(payload.get("coupon_code"), raw.get("coupon_code")),
            updated_at=raw.get("updated_at") or "",
        )

    @classmethod
    def empty(cls, kind: CartKind, owner_id: str = "") -> "Cart":
        return cls(kind=kind, owner_id=owner_id)


@dataclass
class CartSummary:
    """Totals-only view of a cart."""
    kind: CartKind
    total_items: int = 0
    total_price: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    discounted_total: Optional[Decimal] = None
    items_count: int = 0
    last_updated: str = ""
    has_expired: bool = False
    expires_at: str = ""

    def __post_init__(self):
        self.total_price = to_decimal(self.total_price)
        self.discount_amount = to_decimal(self.discount_amount)
        if self.discounted_total is not None:
            self.discounted_total = to_decimal(self.discounted_total)

    @property
    def payable_total(self) -> Decimal:
        if self.discounted_total is not None:
            return round_money(self.discounted_total)
        return apply_discount(self.total_price, self.discount_amount)

    @classmethod
    def from_payload(cls, data: dict, kind: CartKind) -> "CartSummary":
        data = data or {}
        return cls(
            kind=CartKind(kind),
            total_items=int(data.get("total_items") or 0),
            total_price=to_decimal(data.get("total_price")),
            discount_amount=to_decimal(data.get("discount_amount")),
            discounted_total=data.get("discounted_total"),
            items_count=int(data.get("items_count") or 0),
            last_updated=data.get("last_updated") or "",
            has_expired=bool(data.get("has_expired", False)),
            expires_at=data.get("expires_at") or "",
        )


@dataclass
class ValidationIssue:
    """One problem the backend found while re-validating the cart."""
    product_id: str
    issue: str
    action: str = ""
    old_price: Optional[Decimal] = None
    new_price: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ValidationIssue":
        old_price = data.get("old_price")
        new_price = data.get("new_price")
        return cls(
            product_id=str(data.get("product_id", "")),
            issue=data.get("issue", ""),
            action=data.get("action", ""),
            old_price=None if old_price is None else to_decimal(old_price),
            new_price=None if new_price is None else to_decimal(new_price),
        )


@dataclass
class CartValidation:
    """Result of GET /cart/validate: prices and stock re-checked server side."""
    cart: Cart
    cart_updated: bool = False
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @classmethod
    def from_payload(cls, data: dict, kind: CartKind, session_id: Optional[str] = None) -> "CartValidation":
        data = data or {}
        return cls(
            cart=Cart.from_payload(data.get("cart") or {}, kind, session_id=session_id),
            cart_updated=bool(data.get("cart_updated", False)),
            issues=[ValidationIssue.from_dict(i) for i in data.get("validation_issues") or [] if isinstance(i, dict)],
        )
