"""
Product Import Service - Stores batches of products.

Runs the steps of an import for every batch of products, each batch in its
own transaction:

1. Validate the batch (sku present and unique, tier prices unique)
2. Look up the ids of products that are already stored
3. Existing products: resolve url keys, write names and url keys, update
   tier prices
4. New products: resolve url keys against the store as left by step 3,
   insert them, write names and url keys, insert tier prices
5. Report every product to the import logger

Products that end up with errors are reported and left out of the writes;
the rest of the batch is stored. A database failure rolls back the batch and
is raised to the caller.

Usage:
    from product_import.services.product_import_service import ProductImporter

    importer = ProductImporter(engine, ImportConfig())
    result = importer.import_products(products)
    print(result.get_summary())
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.engine import Engine

from .database import connection_scope
from .db_connection import DbConnection
from .exceptions import ServiceError
from .import_log_service import ProductImportLogger
from .logging_utils import get_service_logger, log_operation
from .metadata import MetaData
from .tier_price_service import TierPriceStorage
from .url_key_service import UrlKeyGenerator
from ..models.product import ExplicitUrlKey, Product, RemovedUrlKey
from ..utils.config import ImportConfig
from ..utils.constants import URL_KEY_MAX_LENGTH
from ..utils.datetime_utils import to_db_timestamp, utc_now
from ..utils.slug_utils import create_url_key

logger = get_service_logger(__name__)

ERROR_MISSING_SKU = "Missing sku"
ERROR_DUPLICATE_SKU = "Duplicate sku in batch: {}"
ERROR_DUPLICATE_TIER_PRICE = "Duplicate tier price: group {}, qty {}, website {}"

VARCHAR_CONFLICT_CLAUSE = "(attribute_id, store_id, entity_id) DO UPDATE SET value = excluded.value"


@dataclass
class ImportResult:
    """
    Outcome of an import run.

    Attributes:
        ok_count: Products stored
        failed_count: Products left out because of errors
        errors: One line per product error
    """

    ok_count: int = 0
    failed_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    def add_product(self, product: Product) -> None:
        if product.is_ok():
            self.ok_count += 1
            return
        self.failed_count += 1
        for error in product.get_errors():
            self.errors.append(f"{product.sku}: {error}")

    def get_summary(self) -> str:
        lines = [
            "Product Import Summary",
            "=" * 40,
            f"Imported: {self.ok_count}",
            f"Failed:   {self.failed_count}",
        ]
        if self.errors:
            lines.append("")
            lines.append("Errors:")
            lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)


class ProductImporter:
    """
    Stores products in batches.

    Attributes:
        engine: Engine of the store
        config: Import options
        import_logger: Receives every product after its batch
    """

    def __init__(
        self,
        engine: Engine,
        config: Optional[ImportConfig] = None,
        import_logger: Optional[ProductImportLogger] = None,
        slugify: Callable[[str], str] = create_url_key,
    ):
        self.engine = engine
        self.config = config if config is not None else ImportConfig()
        self.import_logger = import_logger if import_logger is not None else ProductImportLogger()
        self.slugify = slugify

    def import_products(self, products: Sequence[Product]) -> ImportResult:
        """
        Import the products, batch_size products per transaction.

        Returns:
            ImportResult with counts and error lines

        Raises:
            DatabaseError: If the store fails; the current batch is rolled back
        """
        result = ImportResult()
        batch_size = self.config.batch_size

        for start in range(0, len(products), batch_size):
            batch = list(products[start:start + batch_size])

            try:
                self._import_batch(batch)
            except ServiceError as e:
                self.import_logger.handle_exception(e)
                raise

            for product in batch:
                result.add_product(product)
                self.import_logger.product_imported(product)

        log_operation(
            logger,
            operation="import_products",
            outcome="success" if result.success else "product_errors",
            ok_count=result.ok_count,
            failed_count=result.failed_count,
        )
        return result

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def _import_batch(self, products: List[Product]) -> None:
        self._validate(products)

        with connection_scope(self.engine) as connection:
            db = DbConnection(connection, self.config.batch_size)
            metadata = MetaData.load(db)

            valid = [product for product in products if product.is_ok()]
            self._assign_existing_ids(db, metadata, valid)

            new_products = [product for product in valid if product.id is None]
            existing_products = [product for product in valid if product.id is not None]

            generator = UrlKeyGenerator(db, metadata, self.slugify)
            tier_prices = TierPriceStorage(db, metadata)

            # existing products are written first so the new products' pass
            # reads the url keys they keep or give up
            generator.create_url_keys_for_existing_products(
                existing_products,
                self.config.url_key_scheme,
                self.config.duplicate_url_key_strategy,
            )
            existing_products = [product for product in existing_products if product.is_ok()]
            self._touch_existing_products(db, metadata, existing_products)
            self._store_varchar_values(db, metadata, existing_products)
            tier_prices.update_tier_prices(existing_products)

            generator.create_url_keys_for_new_products(
                new_products, self.config.url_key_scheme, self.config.duplicate_url_key_strategy
            )
            new_products = [product for product in new_products if product.is_ok()]
            self._insert_new_products(db, metadata, new_products)
            self._store_varchar_values(db, metadata, new_products)
            tier_prices.insert_tier_prices(new_products)

    def _validate(self, products: List[Product]) -> None:
        """Add errors for problems that can be found without the store."""
        seen_skus: Set[str] = set()

        for product in products:
            if not product.sku:
                product.add_error(ERROR_MISSING_SKU)
                continue

            if product.sku in seen_skus:
                product.add_error(ERROR_DUPLICATE_SKU.format(product.sku))
            seen_skus.add(product.sku)

            if product.tier_prices is None:
                continue

            seen_keys: Set[Tuple] = set()
            for tier_price in product.tier_prices:
                key = (
                    tier_price.all_groups,
                    tier_price.group_id,
                    tier_price.quantity,
                    tier_price.website_id,
                )
                if key in seen_keys:
                    group = "all" if tier_price.all_groups else tier_price.customer_group_id
                    product.add_error(
                        ERROR_DUPLICATE_TIER_PRICE.format(
                            group, tier_price.quantity, tier_price.website_id
                        )
                    )
                seen_keys.add(key)

    def _assign_existing_ids(
        self, db: DbConnection, metadata: MetaData, products: List[Product]
    ) -> None:
        if not products:
            return

        skus = [product.sku for product in products]
        sku_to_id = db.fetch_map(
            f"SELECT sku, entity_id FROM {metadata.product_entity_table} "
            f"WHERE sku IN ({db.get_marks(skus)})",
            skus,
        )
        for product in products:
            if product.sku in sku_to_id:
                product.id = int(sku_to_id[product.sku])

    def _insert_new_products(
        self, db: DbConnection, metadata: MetaData, products: List[Product]
    ) -> None:
        if not products:
            return

        timestamp = to_db_timestamp(utc_now())
        values = []
        for product in products:
            values.extend([product.sku, timestamp, timestamp])

        db.insert_multiple(metadata.product_entity_table, ["sku", "created_at", "updated_at"], values)

        # read back the ids the store assigned
        self._assign_existing_ids(db, metadata, products)

    def _touch_existing_products(
        self, db: DbConnection, metadata: MetaData, products: List[Product]
    ) -> None:
        if not products:
            return

        ids = [product.id for product in products]
        db.execute(
            f"UPDATE {metadata.product_entity_table} SET updated_at = ? "
            f"WHERE entity_id IN ({db.get_marks(ids)})",
            [to_db_timestamp(utc_now()), *ids],
        )

    def _store_varchar_values(
        self, db: DbConnection, metadata: MetaData, products: List[Product]
    ) -> None:
        """Upsert names and url keys; delete url keys that were removed."""
        values = []
        removed: Set[Tuple[int, int]] = set()

        for product in products:
            for store_view in product.get_store_views():
                if store_view.name is not None:
                    values.extend(
                        [
                            metadata.name_attribute_id,
                            store_view.store_view_id,
                            product.id,
                            store_view.name[:URL_KEY_MAX_LENGTH],
                        ]
                    )

                if isinstance(store_view.url_key, ExplicitUrlKey):
                    values.extend(
                        [
                            metadata.url_key_attribute_id,
                            store_view.store_view_id,
                            product.id,
                            store_view.url_key.value,
                        ]
                    )
                elif isinstance(store_view.url_key, RemovedUrlKey):
                    removed.add((product.id, store_view.store_view_id))

        db.insert_multiple_with_update(
            metadata.product_varchar_table,
            ["attribute_id", "store_id", "entity_id", "value"],
            values,
            VARCHAR_CONFLICT_CLAUSE,
        )

        if removed:
            entity_ids = sorted({entity_id for entity_id, _ in removed})
            rows = db.fetch_all_assoc(
                f"SELECT value_id, entity_id, store_id FROM {metadata.product_varchar_table} "
                f"WHERE attribute_id = ? AND entity_id IN ({db.get_marks(entity_ids)})",
                [metadata.url_key_attribute_id, *entity_ids],
            )
            value_ids = [
                row["value_id"]
                for row in rows
                if (row["entity_id"], row["store_id"]) in removed
            ]
            db.delete_multiple(metadata.product_varchar_table, "value_id", value_ids)
