# Services Module
from .models import ProductImage, ProductSummary
from .products import ProductCatalogClient, ProductDetailEnricher

__all__ = ["ProductImage", "ProductSummary", "ProductCatalogClient", "ProductDetailEnricher"]
