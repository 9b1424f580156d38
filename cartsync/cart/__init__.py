"""Cart package: models, backends, repository, and migration."""
from .models import (
    Cart,
    CartKind,
    CartLine,
    CartSummary,
    CartValidation,
    ValidationIssue,
    MAX_QUANTITY,
    MIN_QUANTITY,
    validate_quantity,
)
from .backends import AuthenticatedCartBackend, CartBackend, GuestCartBackend
from .service import CartRepository
from .migration import MigrationCoordinator

__all__ = [
    "Cart",
    "CartKind",
    "CartLine",
    "CartSummary",
    "CartValidation",
    "ValidationIssue",
    "MAX_QUANTITY",
    "MIN_QUANTITY",
    "validate_quantity",
    "AuthenticatedCartBackend",
    "CartBackend",
    "GuestCartBackend",
    "CartRepository",
    "MigrationCoordinator",
]
