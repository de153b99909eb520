"""
Tests for Url Key Service - url key checks and generation.

Tests verify:
- Explicit keys are accepted unless another product holds them
- Generated keys come from the name or the sku
- Taken keys are disambiguated with the sku or a serial
- Stored products keep keys that still fit (repeated imports change nothing)
- Alternatives are truncated before the final check
- Stored keys are read in a single query per pass
"""

import pytest

from product_import.models.enums import DuplicateUrlKeyStrategy, UrlKeyScheme
from product_import.models.product import (
    ExplicitUrlKey,
    GENERATE_URL_KEY,
    REMOVED_URL_KEY,
)
from product_import.services import url_key_service
from product_import.services.url_key_service import (
    DUPLICATE_RULES,
    ERROR_GENERATED_URL_KEY_EXISTS,
    ERROR_URL_KEY_EXISTS,
    ERROR_URL_KEY_NOT_GENERATED,
    UrlKeyGenerator,
    UrlKeyIndex,
    escape_like,
    truncate_url_key,
)
from product_import.tests.conftest import make_product

FROM_NAME = UrlKeyScheme.FROM_NAME
FROM_SKU = UrlKeyScheme.FROM_SKU
ADD_SKU = DuplicateUrlKeyStrategy.ADD_SKU
ADD_SERIAL = DuplicateUrlKeyStrategy.ADD_SERIAL


@pytest.fixture
def generator(db, metadata):
    return UrlKeyGenerator(db, metadata)


def url_key_value(product, store_view_id=0):
    url_key = product.get_store_view(store_view_id).url_key
    return url_key.value if isinstance(url_key, ExplicitUrlKey) else url_key


# ============================================================================
# Helpers
# ============================================================================


class TestUrlKeyIndex:
    """Tests for the in-memory key index."""

    def test_owner_is_none_for_free_key(self):
        index = UrlKeyIndex()
        assert index.owner(0, "foo") is None

    def test_keys_are_per_store_view(self):
        index = UrlKeyIndex()
        index.register(0, "foo", 1)
        assert index.owner(0, "foo") == 1
        assert index.owner(1, "foo") is None

    def test_url_key_of_owner(self):
        index = UrlKeyIndex()
        index.register(0, "foo", 1)
        index.register(0, "bar", 2)
        assert index.url_key_of(0, 2) == "bar"
        assert index.url_key_of(0, 3) is None

    def test_max_serial_ignores_non_numeric_suffixes(self):
        index = UrlKeyIndex()
        for key in ["foo", "foo-1", "foo-7", "foo-bar", "foo-x9", "foobar-12"]:
            index.register(0, key, key)
        assert index.max_serial(0, "foo") == 7
        assert index.max_serial(1, "foo") == 0
        assert len(index) == 6


class TestHelpers:
    def test_truncate_url_key(self):
        assert truncate_url_key("a" * 300) == "a" * 255
        assert truncate_url_key("short") == "short"

    def test_escape_like(self):
        assert escape_like("100%_off\\") == "100\\%\\_off\\\\"

    @pytest.mark.parametrize(
        "existing, accepted",
        [("foo", True), ("foo-12", True), ("foo-x", False), ("foo-1\n", False), ("foo\n", False)],
    )
    def test_serial_strategy_accepts_whole_keys_only(self, existing, accepted):
        rules = DUPLICATE_RULES[ADD_SERIAL]
        assert rules.accepts_existing(existing, "foo", "sku") is accepted


# ============================================================================
# New products
# ============================================================================


class TestNewProducts:
    """Tests for create_url_keys_for_new_products."""

    def test_generates_from_name(self, generator):
        product = make_product("ts-001", name="Blue T-Shirt")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert product.is_ok()
        assert url_key_value(product) == "blue-t-shirt"

    def test_generates_from_sku(self, generator):
        product = make_product("TS_001", name="Blue T-Shirt")

        generator.create_url_keys_for_new_products([product], FROM_SKU, ADD_SERIAL)

        assert url_key_value(product) == "ts-001"

    def test_distinct_explicit_keys_have_no_errors(self, generator):
        products = [
            make_product("a", url_key="first"),
            make_product("b", url_key="second"),
        ]

        generator.create_url_keys_for_new_products(products, FROM_NAME, ADD_SERIAL)

        assert all(product.is_ok() for product in products)
        assert [url_key_value(p) for p in products] == ["first", "second"]

    def test_explicit_key_held_by_stored_product(self, generator, store):
        store.add_product("other", url_keys={0: "shirt"})
        product = make_product("ts-001", url_key="shirt")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert product.get_errors() == [ERROR_URL_KEY_EXISTS.format("shirt")]

    def test_explicit_key_taken_earlier_in_batch(self, generator):
        products = [
            make_product("a", url_key="shirt"),
            make_product("b", url_key="shirt"),
        ]

        generator.create_url_keys_for_new_products(products, FROM_NAME, ADD_SKU)

        assert products[0].is_ok()
        assert products[1].get_errors() == [ERROR_URL_KEY_EXISTS.format("shirt")]

    def test_explicit_key_in_other_store_view_is_free(self, generator, store):
        store.add_product("other", url_keys={1: "shirt"})
        product = make_product("ts-001", url_key="shirt")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert product.is_ok()

    def test_same_name_in_batch_gets_serials(self, generator):
        products = [make_product(sku, name="Foo Bar") for sku in ["a", "b", "c"]]

        generator.create_url_keys_for_new_products(products, FROM_NAME, ADD_SERIAL)

        assert [url_key_value(p) for p in products] == ["foo-bar", "foo-bar-1", "foo-bar-2"]
        assert all(product.is_ok() for product in products)

    def test_serial_continues_after_stored_serials(self, generator, store):
        store.add_product("p1", url_keys={0: "foo"})
        store.add_product("p2", url_keys={0: "foo-1"})
        store.add_product("p3", url_keys={0: "foo-7"})
        store.add_product("p4", url_keys={0: "foo-bar"})
        product = make_product("new", name="Foo")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert url_key_value(product) == "foo-8"

    def test_taken_name_gets_sku_appended(self, generator, store):
        store.add_product("other", url_keys={0: "foo-bar"})
        product = make_product("X-1", name="Foo Bar")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SKU)

        assert product.is_ok()
        assert url_key_value(product) == "foo-bar-x-1"

    def test_taken_alternative_is_an_error(self, generator, store):
        store.add_product("p1", url_keys={0: "foo"})
        store.add_product("p2", url_keys={0: "foo-b"})
        product = make_product("B", name="Foo")

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SKU)

        assert product.get_errors() == [ERROR_GENERATED_URL_KEY_EXISTS.format("foo-b")]
        assert product.global_store_view().url_key == REMOVED_URL_KEY

    def test_alternative_is_truncated_before_check(self, generator, store):
        long_key = "a" * 255
        store.add_product("p1", url_keys={0: long_key})
        product = make_product("x", name="A" * 255)

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SKU)

        # "aaa...a-x" cut to 255 is the stored key again
        assert product.get_errors() == [ERROR_GENERATED_URL_KEY_EXISTS.format(long_key)]

    def test_missing_name_cannot_generate(self, generator):
        product = make_product("ts-001", name=None)

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert product.get_errors() == [ERROR_URL_KEY_NOT_GENERATED]
        assert product.global_store_view().url_key == REMOVED_URL_KEY

    @pytest.mark.parametrize("sku, name", [("ts-001", None), (None, "Blue T-Shirt")])
    def test_sku_scheme_needs_sku_and_name(self, generator, sku, name):
        product = make_product(sku, name=name)

        generator.create_url_keys_for_new_products([product], FROM_SKU, ADD_SERIAL)

        assert product.get_errors() == [ERROR_URL_KEY_NOT_GENERATED]
        assert product.global_store_view().url_key == REMOVED_URL_KEY

    def test_explicit_key_needs_no_name(self, generator):
        product = make_product("ts-001", name=None, url_key="shirt")

        generator.create_url_keys_for_new_products([product], FROM_SKU, ADD_SERIAL)

        assert product.is_ok()
        assert url_key_value(product) == "shirt"

    def test_untouched_and_removed_views_are_skipped(self, generator):
        product = make_product("ts-001", name="Shirt")
        product.get_store_view(1).name = "Hemd"
        product.get_store_view(2).url_key = REMOVED_URL_KEY

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert url_key_value(product, 0) == "shirt"
        assert product.get_store_view(1).url_key is None
        assert product.get_store_view(2).url_key == REMOVED_URL_KEY

    def test_store_views_resolve_independently(self, generator):
        product = make_product("ts-001", name="Shirt")
        view = product.get_store_view(1)
        view.name = "Shirt"
        view.url_key = GENERATE_URL_KEY

        generator.create_url_keys_for_new_products([product], FROM_NAME, ADD_SERIAL)

        assert url_key_value(product, 0) == "shirt"
        assert url_key_value(product, 1) == "shirt"

    def test_stored_keys_read_in_one_query(self, generator, db, monkeypatch):
        queries = []
        execute = db.execute

        def counting_execute(query, params=()):
            queries.append(query)
            return execute(query, params)

        monkeypatch.setattr(db, "execute", counting_execute)
        products = [make_product(f"sku-{i}", name=f"Product {i % 5}") for i in range(50)]

        generator.create_url_keys_for_new_products(products, FROM_NAME, ADD_SERIAL)

        assert len(queries) == 1
        assert all(product.is_ok() for product in products)

    def test_long_candidate_lists_are_split(self, generator, db, store, monkeypatch):
        store.add_product("old-0", url_keys={0: "product-0"})
        store.add_product("old-3", url_keys={0: "product-3-4"})
        monkeypatch.setattr(url_key_service, "MAX_QUERY_PARAMETERS", 5)
        queries = []
        execute = db.execute

        def counting_execute(query, params=()):
            queries.append(params)
            return execute(query, params)

        monkeypatch.setattr(db, "execute", counting_execute)
        products = [make_product(f"sku-{i}", name=f"Product {i % 5}") for i in range(10)]

        generator.create_url_keys_for_new_products(products, FROM_NAME, ADD_SERIAL)

        # 10 lookup patterns, 4 per query plus the attribute id
        assert [len(params) for params in queries] == [5, 5, 3]
        assert [url_key_value(p) for p in products] == [
            "product-0-1", "product-1", "product-2", "product-3", "product-4",
            "product-0-2", "product-1-1", "product-2-1", "product-3-5", "product-4-1",
        ]

    def test_empty_batch_runs_no_query(self, generator, db, monkeypatch):
        monkeypatch.setattr(db, "execute", lambda query, params=(): pytest.fail(query))

        generator.create_url_keys_for_new_products([], FROM_NAME, ADD_SERIAL)


# ============================================================================
# Existing products
# ============================================================================


class TestExistingProducts:
    """Tests for create_url_keys_for_existing_products."""

    def test_keeps_own_standard_key_with_sku_strategy(self, generator, store):
        entity_id = store.add_product("X-1", url_keys={0: "foo-bar"})
        product = make_product("X-1", name="Foo Bar", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SKU)

        assert product.is_ok()
        assert url_key_value(product) == "foo-bar"

    def test_keeps_own_sku_alternative(self, generator, store):
        store.add_product("other", url_keys={0: "foo-bar"})
        entity_id = store.add_product("X-1", url_keys={0: "foo-bar-x-1"})
        product = make_product("X-1", name="Foo Bar", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SKU)

        assert url_key_value(product) == "foo-bar-x-1"

    def test_keeps_own_serial_key(self, generator, store):
        store.add_product("p1", url_keys={0: "foo-bar"})
        store.add_product("p2", url_keys={0: "foo-bar-5"})
        entity_id = store.add_product("p3", url_keys={0: "foo-bar-3"})
        product = make_product("p3", name="Foo Bar", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SERIAL)

        assert product.is_ok()
        assert url_key_value(product) == "foo-bar-3"

    def test_serial_key_with_trailing_newline_is_replaced(self, generator, store):
        entity_id = store.add_product("p1", url_keys={0: "foo-1\n"})
        product = make_product("p1", name="Foo", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SERIAL)

        assert product.is_ok()
        assert url_key_value(product) == "foo"

    def test_repeated_run_keeps_generated_keys(self, generator, store):
        store.add_product("p1", url_keys={0: "foo"})
        entity_id = store.add_product("p2")
        first = make_product("p2", name="Foo", product_id=entity_id)

        generator.create_url_keys_for_existing_products([first], FROM_NAME, ADD_SERIAL)
        assert url_key_value(first) == "foo-1"

        store.db.execute(
            f"INSERT INTO {store.metadata.product_varchar_table} "
            "(attribute_id, store_id, entity_id, value) VALUES (?, 0, ?, ?)",
            [store.metadata.url_key_attribute_id, entity_id, "foo-1"],
        )
        second = make_product("p2", name="Foo", product_id=entity_id)

        generator.create_url_keys_for_existing_products([second], FROM_NAME, ADD_SERIAL)

        assert url_key_value(second) == "foo-1"

    def test_renamed_product_gets_new_key(self, generator, store):
        entity_id = store.add_product("p1", url_keys={0: "old-name"})
        product = make_product("p1", name="New Name", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SERIAL)

        assert url_key_value(product) == "new-name"

    def test_reclaims_own_explicit_key(self, generator, store):
        entity_id = store.add_product("p1", url_keys={0: "shirt"})
        product = make_product("p1", url_key="shirt", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SKU)

        assert product.is_ok()

    def test_explicit_key_of_other_product(self, generator, store):
        store.add_product("p1", url_keys={0: "shirt"})
        entity_id = store.add_product("p2")
        product = make_product("p2", url_key="shirt", product_id=entity_id)

        generator.create_url_keys_for_existing_products([product], FROM_NAME, ADD_SERIAL)

        assert product.get_errors() == [ERROR_URL_KEY_EXISTS.format("shirt")]

    def test_each_pass_only_sees_stored_keys(self, generator, store):
        entity_id = store.add_product("p1")
        new_product = make_product("p2", name="Foo")
        existing = make_product("p1", name="Foo", product_id=entity_id)

        generator.create_url_keys_for_new_products([new_product], FROM_NAME, ADD_SKU)
        generator.create_url_keys_for_existing_products([existing], FROM_NAME, ADD_SKU)

        # the new product is not stored, so the second pass cannot see its key
        assert url_key_value(new_product) == "foo"
        assert url_key_value(existing) == "foo"
