"""
Engine and schema management for the product store.

- SQLite engines with foreign keys and WAL journaling switched on
- Schema creation plus the attribute rows the importer looks up
- One transactional connection per import batch

The importer writes through plain SQL (see db_connection), so this module
hands out Connections rather than ORM sessions; only init_database uses a
Session, to seed the attribute rows.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, inspect, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from ..models.attribute import Attribute
from ..models.base import Base
from ..utils.config import get_config
from ..utils.constants import PRODUCT_ENTITY_TABLE, VARCHAR_ATTRIBUTES

logger = logging.getLogger(__name__)

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)

# Engine of the configured database, created on first use
_engine: Optional[Engine] = None


@event.listens_for(Engine, "connect")
def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    """Run the SQLite pragmas on every new DBAPI connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    for pragma in _SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def _is_in_memory(database_url: str) -> bool:
    return ":memory:" in database_url or "mode=memory" in database_url


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create an engine for the product store.

    Args:
        database_url: SQLAlchemy URL; the configured database when None
        echo: Log every statement SQLAlchemy emits

    Returns:
        Engine; in-memory databases get a single shared connection
    """
    if database_url is None:
        config = get_config()
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Opening product store: {database_url}")

    connect_args = {"check_same_thread": False}
    if _is_in_memory(database_url):
        # every checkout must see the same in-memory database
        return create_engine(
            database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool
        )

    connect_args["timeout"] = 30
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create the product tables and the name / url_key attributes.

    Existing tables and attribute rows are left as they are, so this can run
    before every import.
    """
    engine = engine if engine is not None else get_engine()

    # registers the tables on Base.metadata
    from ..models import attribute, product_entity  # noqa: F401

    Base.metadata.create_all(engine)

    with Session(engine) as session:
        known = set(session.scalars(select(Attribute.attribute_code)))
        missing = [code for code in VARCHAR_ATTRIBUTES if code not in known]
        session.add_all(
            Attribute(attribute_code=code, backend_type="varchar") for code in missing
        )
        session.commit()

    logger.info(f"Product store ready (attributes added: {len(missing)})")


def get_engine(force_recreate: bool = False) -> Engine:
    """Engine of the configured database, created on the first call."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


@contextmanager
def connection_scope(engine: Optional[Engine] = None) -> Iterator[Connection]:
    """
    Connection with an open transaction for one import batch.

    The transaction commits when the block ends and rolls back when it
    raises; the exception is not caught.

    Example:
        with connection_scope(engine) as connection:
            db = DbConnection(connection)
            ...
    """
    engine = engine if engine is not None else get_engine()

    with engine.begin() as connection:
        yield connection


def verify_database(engine: Optional[Engine] = None) -> bool:
    """True if the product tables have been created."""
    engine = engine if engine is not None else get_engine()
    return PRODUCT_ENTITY_TABLE in inspect(engine).get_table_names()
