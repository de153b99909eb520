"""
Constants for the product importer.

This module defines system-wide constants including:
- Database file name
- Storage table names and attribute codes
- Url key limits
- Import defaults
"""

from typing import List

# ============================================================================
# Database File
# ============================================================================

DATABASE_FILENAME = "product_import.db"

# ============================================================================
# Storage Layout
# ============================================================================

ATTRIBUTE_TABLE = "eav_attribute"
PRODUCT_ENTITY_TABLE = "catalog_product_entity"
PRODUCT_VARCHAR_TABLE = f"{PRODUCT_ENTITY_TABLE}_varchar"
TIER_PRICE_TABLE = f"{PRODUCT_ENTITY_TABLE}_tier_price"

# Attribute codes the importer writes to the varchar table
ATTRIBUTE_URL_KEY = "url_key"
ATTRIBUTE_NAME = "name"

VARCHAR_ATTRIBUTES: List[str] = [
    ATTRIBUTE_NAME,
    ATTRIBUTE_URL_KEY,
]

# Global (admin) store view
DEFAULT_STORE_VIEW_ID = 0

# Website used for tier prices that do not name one
DEFAULT_WEBSITE_ID = 0

# ============================================================================
# Url Keys
# ============================================================================

# The varchar value column only allows this many characters
URL_KEY_MAX_LENGTH = 255

# ============================================================================
# Import Defaults
# ============================================================================

# Products per import transaction and rows per multi-row INSERT / DELETE
DEFAULT_BATCH_SIZE = 1000
MAX_BATCH_SIZE = 10000

# Bound parameters per statement; SQLite refuses more than 32766
MAX_QUERY_PARAMETERS = 32000

# Decimal places used for tier price quantities and values
TIER_PRICE_DECIMALS = 4
