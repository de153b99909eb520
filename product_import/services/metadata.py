"""
Storage metadata used by the importer.

Looks up the attribute ids the importer writes once per import, so the
resolution and storage code can build its SQL without further lookups.
"""

from dataclasses import dataclass
from typing import Dict

from .db_connection import DbConnection
from .exceptions import DatabaseError
from ..utils.constants import (
    ATTRIBUTE_NAME,
    ATTRIBUTE_TABLE,
    ATTRIBUTE_URL_KEY,
    PRODUCT_ENTITY_TABLE,
    PRODUCT_VARCHAR_TABLE,
    TIER_PRICE_TABLE,
    VARCHAR_ATTRIBUTES,
)


@dataclass(frozen=True)
class MetaData:
    """
    Table names and attribute ids.

    Attributes:
        attribute_ids: attribute code -> attribute id for the varchar attributes
        product_entity_table: Product table
        product_varchar_table: Varchar value table (name, url_key)
        tier_price_table: Tier price table
    """

    attribute_ids: Dict[str, int]
    product_entity_table: str = PRODUCT_ENTITY_TABLE
    product_varchar_table: str = PRODUCT_VARCHAR_TABLE
    tier_price_table: str = TIER_PRICE_TABLE

    @property
    def url_key_attribute_id(self) -> int:
        return self.attribute_ids[ATTRIBUTE_URL_KEY]

    @property
    def name_attribute_id(self) -> int:
        return self.attribute_ids[ATTRIBUTE_NAME]

    @classmethod
    def load(cls, db: DbConnection) -> "MetaData":
        """
        Read the attribute ids from the store.

        Raises:
            DatabaseError: If an attribute the importer needs is not defined
        """
        attribute_ids = db.fetch_map(
            f"SELECT attribute_code, attribute_id FROM {ATTRIBUTE_TABLE} "
            f"WHERE attribute_code IN ({db.get_marks(VARCHAR_ATTRIBUTES)})",
            VARCHAR_ATTRIBUTES,
        )

        missing = [code for code in VARCHAR_ATTRIBUTES if code not in attribute_ids]
        if missing:
            raise DatabaseError(f"Attributes not defined: {', '.join(missing)}")

        return cls(attribute_ids={code: int(i) for code, i in attribute_ids.items()})
