"""
Tier Price Service - Converges stored tier prices to the imported sets.

A product brings either no tier prices (None: leave the stored ones alone) or
the complete set it should have (possibly empty: remove them all).

Updating takes three bulk steps:
1. Upsert every desired row on the unique key
   (entity_id, all_groups, customer_group_id, qty, website_id); only the price
   changes on conflict.
2. Count the stored rows per product. Only products whose stored count differs
   from their desired count can hold outdated rows.
3. For those products, compare the stored rows with the desired rows by a
   serialized form of all their values and delete the stored rows that are no
   longer wanted.

Quantities and prices are serialized with 4 decimals on both sides, so the
comparison never depends on floating point noise.
"""

from typing import Dict, List, Sequence, Set

from .db_connection import DbConnection
from .logging_utils import get_service_logger, log_operation
from .metadata import MetaData
from ..models.product import Product, TierPrice
from ..utils.constants import TIER_PRICE_DECIMALS

logger = get_service_logger(__name__)

TIER_PRICE_COLUMNS = ["entity_id", "all_groups", "customer_group_id", "qty", "value", "website_id"]

# the unique key of the tier price table
TIER_PRICE_CONFLICT_CLAUSE = (
    "(entity_id, all_groups, customer_group_id, qty, website_id) "
    "DO UPDATE SET value = excluded.value"
)


def serialize_tier_price(entity_id: int, tier_price: TierPrice) -> str:
    """
    Serialize a desired tier price the way the stored rows are serialized.

    Format: "<entity_id> <all_groups> <customer_group_id> <qty> <value> <website_id>"
    with qty and value written with 4 decimals.
    """
    return "{} {} {} {:.{d}f} {:.{d}f} {}".format(
        entity_id,
        tier_price.all_groups,
        tier_price.group_id,
        tier_price.quantity,
        tier_price.value,
        tier_price.website_id,
        d=TIER_PRICE_DECIMALS,
    )


class TierPriceStorage:
    """Writes and prunes the tier prices of stored products."""

    def __init__(self, db: DbConnection, metadata: MetaData):
        self.db = db
        self.metadata = metadata

    def insert_tier_prices(self, products: Sequence[Product]) -> None:
        """
        Store the tier prices of newly inserted products.

        New products cannot have stored rows yet, but the upsert is used all
        the same so a repeated insert does not fail on the unique key.
        """
        self._upsert_tier_prices(products)

    def update_tier_prices(self, products: Sequence[Product]) -> None:
        """
        Make the stored tier prices of existing products match their sets.

        Products whose tier_prices is None are not touched at all.
        """
        products = [product for product in products if product.tier_prices is not None]

        self._upsert_tier_prices(products)

        outdated = self._find_products_with_deletable_tier_prices(products)

        self._remove_outdated_tier_prices(outdated)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _upsert_tier_prices(self, products: Sequence[Product]) -> None:
        values: List = []

        for product in products:
            if product.tier_prices is None:
                continue

            for tier_price in product.tier_prices:
                values.extend(
                    [
                        product.id,
                        tier_price.all_groups,
                        tier_price.group_id,
                        float(tier_price.quantity),
                        float(tier_price.value),
                        tier_price.website_id,
                    ]
                )

        if not values:
            return

        self.db.insert_multiple_with_update(
            self.metadata.tier_price_table,
            TIER_PRICE_COLUMNS,
            values,
            TIER_PRICE_CONFLICT_CLAUSE,
        )

        log_operation(
            logger,
            operation="upsert_tier_prices",
            outcome="success",
            row_count=len(values) // len(TIER_PRICE_COLUMNS),
        )

    def _find_products_with_deletable_tier_prices(
        self, products: Sequence[Product]
    ) -> List[Product]:
        """Products whose stored row count differs from their desired row count."""
        if not products:
            return []

        product_ids = [product.id for product in products]

        counts: Dict[int, int] = self.db.fetch_map(
            f"""
            SELECT entity_id, COUNT(*)
            FROM {self.metadata.tier_price_table}
            WHERE entity_id IN ({self.db.get_marks(product_ids)})
            GROUP BY entity_id
            """,
            product_ids,
        )

        result = []
        for product in products:
            stored_count = counts.get(product.id, 0)
            if stored_count != len(product.tier_prices):
                result.append(product)
        return result

    def _remove_outdated_tier_prices(self, products: Sequence[Product]) -> None:
        """Delete stored rows that are not part of the products' desired sets."""
        if not products:
            return

        product_ids = [product.id for product in products]

        stored_rows = self.db.fetch_all_assoc(
            f"""
            SELECT value_id,
                entity_id || ' ' || all_groups || ' ' || customer_group_id || ' ' ||
                printf('%.{TIER_PRICE_DECIMALS}f', qty) || ' ' ||
                printf('%.{TIER_PRICE_DECIMALS}f', value) || ' ' ||
                website_id AS serialized
            FROM {self.metadata.tier_price_table}
            WHERE entity_id IN ({self.db.get_marks(product_ids)})
            """,
            product_ids,
        )

        active: Set[str] = set()
        for product in products:
            for tier_price in product.tier_prices:
                active.add(serialize_tier_price(product.id, tier_price))

        removable_ids = [row["value_id"] for row in stored_rows if row["serialized"] not in active]

        self.db.delete_multiple(self.metadata.tier_price_table, "value_id", removable_ids)

        log_operation(
            logger,
            operation="remove_outdated_tier_prices",
            outcome="success",
            product_count=len(products),
            deleted_count=len(removable_ids),
        )
