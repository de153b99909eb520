"""
Attribute model.

Holds one row per product attribute the store knows about. The importer only
needs the ids of the varchar attributes it writes (name, url_key).
"""

from sqlalchemy import Column, Integer, String

from .base import Base
from ..utils.constants import ATTRIBUTE_TABLE


class Attribute(Base):
    """
    Product attribute definition.

    Attributes:
        attribute_id: Primary key, referenced by the value tables
        attribute_code: Unique code (e.g., "url_key")
        backend_type: Value table suffix ("varchar", "decimal", ...)
    """

    __tablename__ = ATTRIBUTE_TABLE

    attribute_id = Column(Integer, primary_key=True, autoincrement=True)
    attribute_code = Column(String(255), nullable=False, unique=True)
    backend_type = Column(String(8), nullable=False, default="varchar")

    def __repr__(self) -> str:
        return f"Attribute(attribute_id={self.attribute_id}, code='{self.attribute_code}')"
