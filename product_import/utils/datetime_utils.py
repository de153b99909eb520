"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from product_import.utils.datetime_utils import utc_now, to_db_timestamp

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # For values bound into plain SQL
    db.insert_multiple(table, ["sku", "created_at"], [sku, to_db_timestamp(utc_now())])
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    This is the replacement for the deprecated datetime.utcnow().
    """
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Format a datetime the way SQLAlchemy stores DateTime values in SQLite."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%d %H:%M:%S.%f")
