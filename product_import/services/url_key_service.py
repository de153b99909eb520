"""
Url Key Service - Resolves unique url keys for a batch of products.

Every store view of a product either brings its own url key, asks for one to
be generated from the sku or the name, or has none. Url keys must be unique
per store view, both within the batch and against the keys already stored.

The service reads every stored url key the batch could collide with in a
single query, keeps them in a UrlKeyIndex (store view -> url key -> owner)
and resolves the products one by one against that index. Each key a product
receives is registered in the index right away, so two products in the same
batch that want the same key are told apart as well.

A product whose url key cannot be resolved gets an error and the batch moves
on; nothing is raised for it.

Usage:
    from product_import.services.url_key_service import UrlKeyGenerator

    generator = UrlKeyGenerator(db, metadata)
    generator.create_url_keys_for_new_products(
        new_products, UrlKeyScheme.FROM_NAME, DuplicateUrlKeyStrategy.ADD_SERIAL
    )
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Sequence

from .db_connection import DbConnection
from .logging_utils import get_service_logger, log_operation
from .metadata import MetaData
from ..models.enums import DuplicateUrlKeyStrategy, UrlKeyScheme
from ..models.product import (
    ExplicitUrlKey,
    GenerateUrlKey,
    Product,
    ProductStoreView,
    REMOVED_URL_KEY,
)
from ..utils.constants import MAX_QUERY_PARAMETERS, URL_KEY_MAX_LENGTH
from ..utils.slug_utils import create_url_key

logger = get_service_logger(__name__)

ERROR_URL_KEY_EXISTS = "Url key already exists: {}"
ERROR_GENERATED_URL_KEY_EXISTS = "Generated url key already exists: {}"
ERROR_URL_KEY_NOT_GENERATED = "Url key could not be generated: name or sku missing"


# ============================================================================
# Url Key Index
# ============================================================================


class UrlKeyIndex:
    """
    Url keys known during one resolution pass.

    Maps store view id -> url key -> owner, where the owner is a product id or
    the placeholder of a product that has not been stored yet. A url key has
    at most one owner per store view.
    """

    def __init__(self):
        self._keys: Dict[int, Dict[str, Hashable]] = {}

    def owner(self, store_view_id: int, url_key: str) -> Optional[Hashable]:
        """Owner of the url key in this store view, or None if it is free."""
        return self._keys.get(store_view_id, {}).get(url_key)

    def register(self, store_view_id: int, url_key: str, owner: Hashable) -> None:
        self._keys.setdefault(store_view_id, {})[url_key] = owner

    def url_key_of(self, store_view_id: int, owner: Hashable) -> Optional[str]:
        """First url key owned by this owner in this store view."""
        for url_key, key_owner in self._keys.get(store_view_id, {}).items():
            if key_owner == owner:
                return url_key
        return None

    def max_serial(self, store_view_id: int, base: str) -> int:
        """Highest N among the keys "<base>-N" in this store view (0 if none)."""
        prefix = f"{base}-"
        highest = 0
        for url_key in self._keys.get(store_view_id, {}):
            if url_key.startswith(prefix):
                suffix = url_key[len(prefix):]
                if suffix.isdigit() and suffix.isascii():
                    highest = max(highest, int(suffix))
        return highest

    def __len__(self) -> int:
        return sum(len(keys) for keys in self._keys.values())


# ============================================================================
# Duplicate Strategies
# ============================================================================


def truncate_url_key(url_key: str) -> str:
    """Cut a url key to the length the value column allows."""
    return url_key[:URL_KEY_MAX_LENGTH]


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value only matches itself (ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _sku_lookup(standard: str, sku_key: str) -> str:
    return truncate_url_key(f"{standard}-{sku_key}")


def _sku_alternative(standard: str, sku_key: str, next_serial: Callable[[], int]) -> str:
    return truncate_url_key(f"{standard}-{sku_key}")


def _sku_accepts(existing: str, standard: str, sku_key: str) -> bool:
    return existing in (standard, truncate_url_key(f"{standard}-{sku_key}"))


def _serial_lookup(standard: str, sku_key: str) -> str:
    # the serial is not known yet, so fetch every "<standard>-..." key
    return f"{escape_like(standard)}-%"


def _serial_alternative(standard: str, sku_key: str, next_serial: Callable[[], int]) -> str:
    return truncate_url_key(f"{standard}-{next_serial()}")


def _serial_accepts(existing: str, standard: str, sku_key: str) -> bool:
    # any serial is accepted, not only the next free one
    return re.fullmatch(rf"{re.escape(standard)}(-\d+)?", existing, re.ASCII) is not None


@dataclass(frozen=True)
class DuplicateRules:
    """
    What a duplicate strategy contributes to resolution.

    Attributes:
        lookup_key: (standard, sku key) -> value (or LIKE pattern) to pre-fetch
        alternative: (standard, sku key, next serial) -> disambiguated url key
        accepts_existing: (stored key, standard, sku key) -> keep the stored key?
    """

    lookup_key: Callable[[str, str], str]
    alternative: Callable[[str, str, Callable[[], int]], str]
    accepts_existing: Callable[[str, str, str], bool]


DUPLICATE_RULES: Dict[DuplicateUrlKeyStrategy, DuplicateRules] = {
    DuplicateUrlKeyStrategy.ADD_SKU: DuplicateRules(_sku_lookup, _sku_alternative, _sku_accepts),
    DuplicateUrlKeyStrategy.ADD_SERIAL: DuplicateRules(
        _serial_lookup, _serial_alternative, _serial_accepts
    ),
}


# ============================================================================
# Generator
# ============================================================================


@dataclass
class _PassCounts:
    views: int = 0
    explicit: int = 0
    generated: int = 0
    kept: int = 0
    failed: int = 0


class UrlKeyGenerator:
    """
    Creates url keys for products, based on their sku or name and, where the
    key is taken, extended with the sku or a serial number.
    """

    def __init__(
        self,
        db: DbConnection,
        metadata: MetaData,
        slugify: Callable[[str], str] = create_url_key,
    ):
        self.db = db
        self.metadata = metadata
        self.slugify = slugify

    def create_url_keys_for_new_products(
        self,
        products: Sequence[Product],
        url_key_scheme: UrlKeyScheme,
        duplicate_strategy: DuplicateUrlKeyStrategy,
    ) -> None:
        """
        Check and generate url keys for products that are not stored yet.

        Args:
            products: Products without an id
            url_key_scheme: Source of generated keys
            duplicate_strategy: Disambiguation for taken keys
        """
        self._resolve(products, url_key_scheme, duplicate_strategy, keep_existing=False)

    def create_url_keys_for_existing_products(
        self,
        products: Sequence[Product],
        url_key_scheme: UrlKeyScheme,
        duplicate_strategy: DuplicateUrlKeyStrategy,
    ) -> None:
        """
        Check and generate url keys for stored products.

        A product may keep or re-claim its own url key. When generation is
        requested and the stored key already fits the scheme and strategy, the
        stored key is kept instead of generating a new one.

        Args:
            products: Products with an id
            url_key_scheme: Source of generated keys
            duplicate_strategy: Disambiguation for taken keys
        """
        self._resolve(products, url_key_scheme, duplicate_strategy, keep_existing=True)

    # ------------------------------------------------------------------
    # Resolution pass
    # ------------------------------------------------------------------

    def _resolve(
        self,
        products: Sequence[Product],
        url_key_scheme: UrlKeyScheme,
        duplicate_strategy: DuplicateUrlKeyStrategy,
        keep_existing: bool,
    ) -> None:
        if not products:
            return

        rules = DUPLICATE_RULES[duplicate_strategy]
        index = self._collect_existing_url_keys(products, url_key_scheme, duplicate_strategy)
        counts = _PassCounts()

        for position, product in enumerate(products):
            owner = self._owner(product, position)

            for store_view in product.get_store_views():
                url_key = store_view.url_key
                store_view_id = store_view.store_view_id

                if isinstance(url_key, ExplicitUrlKey):
                    counts.views += 1
                    counts.explicit += 1
                    holder = index.owner(store_view_id, url_key.value)
                    if holder is not None and holder != owner:
                        product.add_error(ERROR_URL_KEY_EXISTS.format(url_key.value))
                        counts.failed += 1
                    else:
                        index.register(store_view_id, url_key.value, owner)

                elif isinstance(url_key, GenerateUrlKey):
                    counts.views += 1

                    if keep_existing:
                        existing = self._check_existing_url_key(
                            product, store_view, owner, index, url_key_scheme, rules
                        )
                        if existing is not None:
                            store_view.url_key = ExplicitUrlKey(existing)
                            index.register(store_view_id, existing, owner)
                            counts.kept += 1
                            continue

                    generated = self._generate_url_key(
                        product, store_view, owner, index, url_key_scheme, rules
                    )
                    if generated is not None:
                        store_view.url_key = ExplicitUrlKey(generated)
                        index.register(store_view_id, generated, owner)
                        counts.generated += 1
                    else:
                        # never write a key that is known to be taken
                        store_view.url_key = REMOVED_URL_KEY
                        counts.failed += 1

        log_operation(
            logger,
            operation=(
                "create_url_keys_for_existing_products"
                if keep_existing
                else "create_url_keys_for_new_products"
            ),
            outcome="product_errors" if counts.failed else "success",
            level=logging.WARNING if counts.failed else logging.INFO,
            product_count=len(products),
            view_count=counts.views,
            explicit_count=counts.explicit,
            generated_count=counts.generated,
            kept_count=counts.kept,
            failed_count=counts.failed,
        )

    @staticmethod
    def _owner(product: Product, position: int) -> Hashable:
        """The owner a product's keys are registered under."""
        if product.id is not None:
            return product.id
        # unique per pass; never equal to a stored entity id
        return ("new", position)

    def _check_existing_url_key(
        self,
        product: Product,
        store_view: ProductStoreView,
        owner: Hashable,
        index: UrlKeyIndex,
        url_key_scheme: UrlKeyScheme,
        rules: DuplicateRules,
    ) -> Optional[str]:
        """Return the product's stored url key if it still fits, else None."""
        existing = index.url_key_of(store_view.store_view_id, owner)
        if existing is None:
            return None

        standard = self._standard_url_key(product, store_view, url_key_scheme)
        if standard == "":
            return None

        if rules.accepts_existing(existing, standard, self._sku_key(product)):
            return existing
        return None

    def _generate_url_key(
        self,
        product: Product,
        store_view: ProductStoreView,
        owner: Hashable,
        index: UrlKeyIndex,
        url_key_scheme: UrlKeyScheme,
        rules: DuplicateRules,
    ) -> Optional[str]:
        """Return a free url key, or None after adding an error to the product."""
        store_view_id = store_view.store_view_id
        standard = self._standard_url_key(product, store_view, url_key_scheme)

        if standard == "":
            product.add_error(ERROR_URL_KEY_NOT_GENERATED)
            return None

        holder = index.owner(store_view_id, standard)
        if holder is None or holder == owner:
            return standard

        alternative = rules.alternative(
            standard,
            self._sku_key(product),
            lambda: index.max_serial(store_view_id, standard) + 1,
        )

        holder = index.owner(store_view_id, alternative)
        if holder is not None and holder != owner:
            product.add_error(ERROR_GENERATED_URL_KEY_EXISTS.format(alternative))
            return None

        return alternative

    # ------------------------------------------------------------------
    # Pre-fetch
    # ------------------------------------------------------------------

    def _collect_existing_url_keys(
        self,
        products: Sequence[Product],
        url_key_scheme: UrlKeyScheme,
        duplicate_strategy: DuplicateUrlKeyStrategy,
    ) -> UrlKeyIndex:
        """Build the index from every stored key the batch could run into."""
        rules = DUPLICATE_RULES[duplicate_strategy]
        lookup_keys: Dict[str, None] = {}

        for product in products:
            sku_key = self._sku_key(product)
            for store_view in product.get_store_views():
                if not isinstance(store_view.url_key, (ExplicitUrlKey, GenerateUrlKey)):
                    continue

                standard = self._standard_url_key(product, store_view, url_key_scheme)
                if standard == "":
                    continue

                if duplicate_strategy == DuplicateUrlKeyStrategy.ADD_SERIAL:
                    lookup_keys[escape_like(standard)] = None
                else:
                    lookup_keys[standard] = None
                lookup_keys[rules.lookup_key(standard, sku_key)] = None

        index = UrlKeyIndex()
        for row in self._fetch_url_keys(list(lookup_keys), duplicate_strategy):
            index.register(int(row["store_id"]), row["value"], int(row["entity_id"]))

        logger.debug(f"Url key index holds {len(index)} stored keys")
        return index

    def _fetch_url_keys(
        self, lookup_keys: List[str], duplicate_strategy: DuplicateUrlKeyStrategy
    ) -> List[Dict]:
        """
        Stored url key rows matching any of the lookup keys.

        One query for up to MAX_QUERY_PARAMETERS - 1 lookup keys; larger
        candidate lists are split so no statement exceeds SQLite's bound
        parameter limit.
        """
        rows: List[Dict] = []
        chunk_size = MAX_QUERY_PARAMETERS - 1

        for start in range(0, len(lookup_keys), chunk_size):
            chunk = lookup_keys[start:start + chunk_size]
            rows.extend(self._fetch_url_key_chunk(chunk, duplicate_strategy))
        return rows

    def _fetch_url_key_chunk(
        self, lookup_keys: List[str], duplicate_strategy: DuplicateUrlKeyStrategy
    ) -> List[Dict]:
        table = self.metadata.product_varchar_table
        attribute_id = self.metadata.url_key_attribute_id

        if duplicate_strategy == DuplicateUrlKeyStrategy.ADD_SERIAL:
            patterns = ", ".join(["(?)"] * len(lookup_keys))
            return self.db.fetch_all_assoc(
                f"""
                SELECT v.entity_id, v.store_id, v.value
                FROM {table} v
                JOIN (VALUES {patterns}) AS p ON v.value LIKE p.column1 ESCAPE '\\'
                WHERE v.attribute_id = ?
                ORDER BY v.value_id
                """,
                [*lookup_keys, attribute_id],
            )

        return self.db.fetch_all_assoc(
            f"""
            SELECT entity_id, store_id, value
            FROM {table}
            WHERE attribute_id = ? AND value IN ({self.db.get_marks(lookup_keys)})
            ORDER BY value_id
            """,
            [attribute_id, *lookup_keys],
        )

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def _standard_url_key(
        self, product: Product, store_view: ProductStoreView, url_key_scheme: UrlKeyScheme
    ) -> str:
        """
        The explicit url key, or the key derived from the sku or the name.

        A generated key needs both sku and name, whichever scheme is used;
        "" when one of them is missing.
        """
        if isinstance(store_view.url_key, ExplicitUrlKey):
            return store_view.url_key.value
        if product.sku is None or store_view.name is None:
            return ""
        if url_key_scheme == UrlKeyScheme.FROM_SKU:
            return self._sku_key(product)
        return self.slugify(store_view.name)

    def _sku_key(self, product: Product) -> str:
        if product.sku is None:
            return ""
        return self.slugify(product.sku)
