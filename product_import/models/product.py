"""
Import records for products.

A Product is what a reader hands to the importer: a sku, per store view
values and optionally a complete set of tier prices. Products live for one
import batch; problems found while importing are collected on the product
instead of being raised, so one bad product never stops the batch.

Example:
    product = Product("ts-001", line_number=12)
    view = product.global_store_view()
    view.name = "Blue T-Shirt"
    view.url_key = GENERATE_URL_KEY
    product.tier_prices = [TierPrice(quantity=10, value="8.50")]
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Union

from ..utils.constants import DEFAULT_STORE_VIEW_ID, DEFAULT_WEBSITE_ID, TIER_PRICE_DECIMALS

_QUANTUM = Decimal(1).scaleb(-TIER_PRICE_DECIMALS)


# ============================================================================
# Url Key Values
# ============================================================================


@dataclass(frozen=True)
class ExplicitUrlKey:
    """A url key given by the caller, used as is."""

    value: str


@dataclass(frozen=True)
class GenerateUrlKey:
    """The caller wants a url key derived from the sku or the name."""


@dataclass(frozen=True)
class RemovedUrlKey:
    """No url key: any stored one is removed."""


GENERATE_URL_KEY = GenerateUrlKey()
REMOVED_URL_KEY = RemovedUrlKey()

UrlKey = Union[ExplicitUrlKey, GenerateUrlKey, RemovedUrlKey]


# ============================================================================
# Tier Prices
# ============================================================================


def to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Convert a number to a Decimal with TIER_PRICE_DECIMALS places.

    Raises:
        ValueError: If the value is NaN or infinite
        InvalidOperation: If the value is not a number
    """
    if not isinstance(value, Decimal):
        # str() keeps floats like 12.1 from turning into 12.0999999...
        value = Decimal(str(value))
    if not value.is_finite():
        raise ValueError(f"Not a finite number: {value}")
    return value.quantize(_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass
class TierPrice:
    """
    One price of a product's tier price set.

    Attributes:
        quantity: Minimum quantity for the price
        value: The price
        customer_group_id: Customer group, None for all groups
        website_id: Website scope (0 = all websites)
    """

    quantity: Decimal
    value: Decimal
    customer_group_id: Optional[int] = None
    website_id: int = DEFAULT_WEBSITE_ID

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity)
        self.value = to_decimal(self.value)

    @property
    def all_groups(self) -> int:
        """1 if the price applies to every customer group, 0 otherwise."""
        return int(self.customer_group_id is None)

    @property
    def group_id(self) -> int:
        """Customer group as stored (0 for all groups)."""
        return int(self.customer_group_id or 0)


# ============================================================================
# Products
# ============================================================================


@dataclass
class ProductStoreView:
    """
    The values of a product in one store view.

    Attributes:
        store_view_id: Store view id (0 = global)
        name: Product name in this store view
        url_key: Explicit url key, generation request, removal, or None
                 when the import leaves the url key untouched
    """

    store_view_id: int
    name: Optional[str] = None
    url_key: Optional[UrlKey] = None


class Product:
    """
    A product in an import batch.

    Attributes:
        id: Stored entity id, None until the product is inserted
        sku: Unique external code
        line_number: Where the product starts in the source file (for reports)
        tier_prices: Desired tier prices; None leaves stored ones untouched,
                     an empty list removes them all
    """

    def __init__(self, sku: Optional[str], line_number: int = 0):
        self.id: Optional[int] = None
        self.sku = sku
        self.line_number = line_number
        self.tier_prices: Optional[List[TierPrice]] = None
        self._store_views: Dict[int, ProductStoreView] = {}
        self._errors: List[str] = []

    def get_store_view(self, store_view_id: int) -> ProductStoreView:
        """Return the store view with this id, creating it when needed."""
        if store_view_id not in self._store_views:
            self._store_views[store_view_id] = ProductStoreView(store_view_id)
        return self._store_views[store_view_id]

    def global_store_view(self) -> ProductStoreView:
        """Return the global (store id 0) store view."""
        return self.get_store_view(DEFAULT_STORE_VIEW_ID)

    def get_store_views(self) -> List[ProductStoreView]:
        """Store views in the order they were added."""
        return list(self._store_views.values())

    def add_error(self, error: str) -> None:
        self._errors.append(error)

    def get_errors(self) -> List[str]:
        return list(self._errors)

    def is_ok(self) -> bool:
        return not self._errors

    def __repr__(self) -> str:
        return f"Product(id={self.id}, sku='{self.sku}')"
