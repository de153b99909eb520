"""
Enumerations for import configuration.

This module contains the enums that steer url key resolution:
- UrlKeyScheme: Source of a generated url key
- DuplicateUrlKeyStrategy: How a generated url key is made unique
"""

from enum import Enum


class UrlKeyScheme(str, Enum):
    """
    Where a generated url key is derived from.

    Values:
        FROM_SKU: Slug of the product's sku
        FROM_NAME: Slug of the store view's product name
    """

    FROM_SKU = "from-sku"
    FROM_NAME = "from-name"


class DuplicateUrlKeyStrategy(str, Enum):
    """
    Disambiguation applied when a generated url key is already taken.

    Values:
        ADD_SKU: Append "-" and the slug of the sku ("blue-shirt-ts-001")
        ADD_SERIAL: Append "-" and the next free number ("blue-shirt-3")
    """

    ADD_SKU = "add-sku"
    ADD_SERIAL = "add-serial"
