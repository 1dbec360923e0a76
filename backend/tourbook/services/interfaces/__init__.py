"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .product_catalog import ProductCatalog
from .static_catalog import StaticProductCatalog

__all__ = ['ProductCatalog', 'StaticProductCatalog']
