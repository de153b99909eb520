"""
Stored product models.

These tables hold what the importer converges towards:
- ProductEntity: one row per sku
- ProductVarchar: per store view text values (name, url_key)
- ProductTierPrice: quantity/customer group prices

Example: a shirt with sku "ts-001" has one ProductEntity row, a "url_key"
         ProductVarchar row for every store view that has its own url key,
         and a ProductTierPrice row for every (group, qty, website) price.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from .base import Base
from ..utils.datetime_utils import utc_now
from ..utils.constants import (
    ATTRIBUTE_TABLE,
    PRODUCT_ENTITY_TABLE,
    PRODUCT_VARCHAR_TABLE,
    TIER_PRICE_TABLE,
    URL_KEY_MAX_LENGTH,
)


class ProductEntity(Base):
    """
    Stored product.

    Attributes:
        entity_id: Primary key, the product id used by the value tables
        sku: Unique external code
        created_at: When the product was first imported
        updated_at: Last import that touched the product
    """

    __tablename__ = PRODUCT_ENTITY_TABLE

    entity_id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"ProductEntity(entity_id={self.entity_id}, sku='{self.sku}')"


class ProductVarchar(Base):
    """
    Text attribute value of a product in one store view.

    Attributes:
        value_id: Primary key
        attribute_id: Attribute the value belongs to
        store_id: Store view id (0 = global)
        entity_id: Product the value belongs to
        value: The text, at most 255 characters
    """

    __tablename__ = PRODUCT_VARCHAR_TABLE

    value_id = Column(Integer, primary_key=True, autoincrement=True)
    attribute_id = Column(
        Integer, ForeignKey(f"{ATTRIBUTE_TABLE}.attribute_id", ondelete="CASCADE"), nullable=False
    )
    store_id = Column(Integer, nullable=False, default=0)
    entity_id = Column(
        Integer,
        ForeignKey(f"{PRODUCT_ENTITY_TABLE}.entity_id", ondelete="CASCADE"),
        nullable=False,
    )
    value = Column(String(URL_KEY_MAX_LENGTH), nullable=True)

    __table_args__ = (
        # One value per attribute, store view and product
        UniqueConstraint(
            "attribute_id", "store_id", "entity_id", name="uq_product_varchar_attribute_store_entity"
        ),
        Index("idx_product_varchar_attribute_value", "attribute_id", "value"),
    )

    def __repr__(self) -> str:
        return (
            f"ProductVarchar(entity_id={self.entity_id}, store_id={self.store_id}, "
            f"value='{self.value}')"
        )


class ProductTierPrice(Base):
    """
    Tier price of a product.

    Attributes:
        value_id: Primary key, used to delete outdated rows
        entity_id: Product the price belongs to
        all_groups: 1 if the price applies to all customer groups
        customer_group_id: Customer group (0 when all_groups is 1)
        qty: Minimum quantity for the price
        value: The price
        website_id: Website scope (0 = all websites)
    """

    __tablename__ = TIER_PRICE_TABLE

    value_id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(
        Integer,
        ForeignKey(f"{PRODUCT_ENTITY_TABLE}.entity_id", ondelete="CASCADE"),
        nullable=False,
    )
    all_groups = Column(Integer, nullable=False, default=1)
    customer_group_id = Column(Integer, nullable=False, default=0)
    qty = Column(Numeric(12, 4), nullable=False, default=1)
    value = Column(Numeric(20, 6), nullable=False, default=0)
    website_id = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        # The upsert key used by TierPriceStorage
        UniqueConstraint(
            "entity_id",
            "all_groups",
            "customer_group_id",
            "qty",
            "website_id",
            name="uq_tier_price_entity_groups_qty_website",
        ),
        Index("idx_tier_price_entity", "entity_id"),
    )

    def __repr__(self) -> str:
        return (
            f"ProductTierPrice(entity_id={self.entity_id}, group={self.customer_group_id}, "
            f"qty={self.qty}, value={self.value})"
        )
