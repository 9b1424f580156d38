"""Product display models - Pydantic models for denormalized product data."""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, field_validator

from cartsync.services.money import to_decimal as _to_decimal


class ProductImage(BaseModel):
    """One product image."""
    model_config = ConfigDict(extra="ignore")

    image_url: Optional[str] = None
    is_active: bool = True
    is_primary: bool = False


class ProductSummary(BaseModel):
    """
    Display data for a product referenced by a cart line or wishlist item.

    Not authoritative: the catalog owns the product and this copy can
    always be re-fetched by id.
    """
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    price: Decimal = Decimal("0")
    original_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    images: List[ProductImage] = []
    category: Optional[str] = None
    rating: Optional[float] = None
    in_stock: Optional[bool] = None

    @field_validator("price", mode="before")
    @classmethod
    def convert_price(cls, v):
        return _to_decimal(v)

    @field_validator("original_price", mode="before")
    @classmethod
    def convert_original_price(cls, v):
        return None if v is None else _to_decimal(v)

    @field_validator("images", mode="before")
    @classmethod
    def drop_null_images(cls, v):
        return [img for img in (v or []) if img]

    @property
    def has_image(self) -> bool:
        """True when the product carries something a view can render."""
        if self.image_url:
            return True
        return any(img.image_url and img.is_active for img in self.images)

    @property
    def primary_image(self) -> Optional[str]:
        if self.image_url:
            return self.image_url
        active = [img for img in self.images if img.image_url and img.is_active]
        for img in active:
            if img.is_primary:
                return img.image_url
        return active[0].image_url if active else None

    def to_cache(self) -> dict:
        return self.model_dump(mode="json")


def product_has_image(product: Optional[ProductSummary]) -> bool:
    return product is not None and product.has_image
