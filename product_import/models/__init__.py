"""
Models package.

This package contains the import records (Product, ProductStoreView, TierPrice)
and the SQLAlchemy models that describe the storage tables.
"""

from .base import Base
from .attribute import Attribute
from .product_entity import ProductEntity, ProductVarchar, ProductTierPrice
from .enums import UrlKeyScheme, DuplicateUrlKeyStrategy
from .product import (
    Product,
    ProductStoreView,
    TierPrice,
    ExplicitUrlKey,
    GenerateUrlKey,
    RemovedUrlKey,
    UrlKey,
    GENERATE_URL_KEY,
    REMOVED_URL_KEY,
)

__all__ = [
    "Base",
    "Attribute",
    "ProductEntity",
    "ProductVarchar",
    "ProductTierPrice",
    "UrlKeyScheme",
    "DuplicateUrlKeyStrategy",
    "Product",
    "ProductStoreView",
    "TierPrice",
    "ExplicitUrlKey",
    "GenerateUrlKey",
    "RemovedUrlKey",
    "UrlKey",
    "GENERATE_URL_KEY",
    "REMOVED_URL_KEY",
]
