"""Pytest configuration and fixtures for the importer tests."""

from contextlib import contextmanager

import pytest

from product_import.models.product import (
    ExplicitUrlKey,
    GENERATE_URL_KEY,
    Product,
    TierPrice,
)
from product_import.services.database import create_database_engine, init_database
from product_import.services.db_connection import DbConnection
from product_import.services.metadata import MetaData
from product_import.utils.config import reset_config


@pytest.fixture(autouse=True)
def clean_config():
    """Make every test start from a fresh configuration singleton."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def engine():
    """Provide a clean in-memory store with schema and attributes.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables and seeds the name / url_key attributes
    3. Provides the engine to the test
    4. Disposes of the engine after the test completes
    """
    engine = create_database_engine("sqlite:///:memory:")
    init_database(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def db(engine):
    """Provide a DbConnection inside a transaction that is committed afterwards."""
    with engine.begin() as connection:
        yield DbConnection(connection, batch_size=3)


@pytest.fixture
def metadata(db):
    return MetaData.load(db)


@pytest.fixture
def store(db, metadata):
    """Helpers that write stored products and read them back."""
    return StoreHelper(db, metadata)


class StoreHelper:
    """Writes fixture rows with plain SQL and reads the results of an import."""

    def __init__(self, db: DbConnection, metadata: MetaData):
        self.db = db
        self.metadata = metadata

    def add_product(self, sku, url_keys=None, name=None):
        """Store a product; url_keys maps store view id -> url key."""
        self.db.execute(
            f"INSERT INTO {self.metadata.product_entity_table} (sku, created_at, updated_at) "
            "VALUES (?, '2026-01-01 00:00:00.000000', '2026-01-01 00:00:00.000000')",
            [sku],
        )
        entity_id = self.db.fetch_single_cell(
            f"SELECT entity_id FROM {self.metadata.product_entity_table} WHERE sku = ?", [sku]
        )
        for store_id, url_key in (url_keys or {}).items():
            self.db.execute(
                f"INSERT INTO {self.metadata.product_varchar_table} "
                "(attribute_id, store_id, entity_id, value) VALUES (?, ?, ?, ?)",
                [self.metadata.url_key_attribute_id, store_id, entity_id, url_key],
            )
        if name is not None:
            self.db.execute(
                f"INSERT INTO {self.metadata.product_varchar_table} "
                "(attribute_id, store_id, entity_id, value) VALUES (?, 0, ?, ?)",
                [self.metadata.name_attribute_id, entity_id, name],
            )
        return entity_id

    def add_tier_price(self, entity_id, qty, value, customer_group_id=None, website_id=0):
        self.db.execute(
            f"INSERT INTO {self.metadata.tier_price_table} "
            "(entity_id, all_groups, customer_group_id, qty, value, website_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                entity_id,
                int(customer_group_id is None),
                customer_group_id or 0,
                qty,
                value,
                website_id,
            ],
        )

    def url_key(self, entity_id, store_id=0):
        return self.db.fetch_single_cell(
            f"SELECT value FROM {self.metadata.product_varchar_table} "
            "WHERE attribute_id = ? AND store_id = ? AND entity_id = ?",
            [self.metadata.url_key_attribute_id, store_id, entity_id],
        )

    def name(self, entity_id, store_id=0):
        return self.db.fetch_single_cell(
            f"SELECT value FROM {self.metadata.product_varchar_table} "
            "WHERE attribute_id = ? AND store_id = ? AND entity_id = ?",
            [self.metadata.name_attribute_id, store_id, entity_id],
        )

    def entity_id(self, sku):
        return self.db.fetch_single_cell(
            f"SELECT entity_id FROM {self.metadata.product_entity_table} WHERE sku = ?", [sku]
        )

    def tier_prices(self, entity_id):
        """Stored tier prices as (all_groups, group, qty, value, website) tuples."""
        rows = self.db.fetch_all_assoc(
            "SELECT all_groups, customer_group_id, qty, value, website_id "
            f"FROM {self.metadata.tier_price_table} WHERE entity_id = ? "
            "ORDER BY customer_group_id, qty, website_id",
            [entity_id],
        )
        return [
            (
                row["all_groups"],
                row["customer_group_id"],
                float(row["qty"]),
                float(row["value"]),
                row["website_id"],
            )
            for row in rows
        ]


@contextmanager
def open_store(engine):
    """StoreHelper in its own transaction, for tests that also run the importer."""
    with engine.begin() as connection:
        db = DbConnection(connection)
        yield StoreHelper(db, MetaData.load(db))


def make_product(sku, name=None, url_key=GENERATE_URL_KEY, product_id=None, line_number=1):
    """Build a product with a global store view."""
    product = Product(sku, line_number=line_number)
    product.id = product_id
    view = product.global_store_view()
    view.name = name
    if isinstance(url_key, str):
        url_key = ExplicitUrlKey(url_key)
    view.url_key = url_key
    return product


def tier_price(qty, value, customer_group_id=None, website_id=0):
    return TierPrice(
        quantity=qty, value=value, customer_group_id=customer_group_id, website_id=website_id
    )
