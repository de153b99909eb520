"""
Bulk SQL access for the importer.

DbConnection wraps a SQLAlchemy Connection and offers the handful of bulk
statements the importer needs: fetch rows, fetch one column, fetch a key/value
map, multi-row insert (optionally with ON CONFLICT update) and multi-row
delete. Parameters are always positional ("?" markers); only table and column
names are placed in the SQL text, and those are checked first.

Usage:
    from product_import.services.database import connection_scope
    from product_import.services.db_connection import DbConnection

    with connection_scope() as connection:
        db = DbConnection(connection)
        ids = db.fetch_map(
            "SELECT sku, entity_id FROM catalog_product_entity WHERE sku IN ("
            + db.get_marks(skus) + ")",
            skus,
        )
"""

import re
from typing import Any, Dict, Iterator, List, Sequence

from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import DatabaseError
from .logging_utils import get_service_logger
from ..utils.constants import DEFAULT_BATCH_SIZE, MAX_QUERY_PARAMETERS

logger = get_service_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str) -> str:
    """
    Make sure a table or column name is safe to place in SQL text.

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class DbConnection:
    """
    Bulk statement helper around one SQLAlchemy connection.

    Attributes:
        connection: The SQLAlchemy connection (transaction is owned by the caller)
        batch_size: Maximum rows per multi-row INSERT or DELETE; fewer when
            the rows would exceed MAX_QUERY_PARAMETERS bound values
    """

    def __init__(self, connection: Connection, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.connection = connection
        self.batch_size = batch_size

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def execute(self, query: str, params: Sequence[Any] = ()) -> CursorResult:
        """
        Execute one statement with positional parameters.

        Raises:
            DatabaseError: If the driver reports a failure
        """
        logger.debug(f"SQL: {' '.join(query.split())} ({len(params)} params)")
        try:
            return self.connection.exec_driver_sql(query, tuple(params))
        except SQLAlchemyError as e:
            raise DatabaseError(str(e).splitlines()[0], original_error=e) from e

    def fetch_all_assoc(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Return all rows as dictionaries keyed by column name."""
        result = self.execute(query, params)
        return [dict(row) for row in result.mappings()]

    def fetch_single_column(self, query: str, params: Sequence[Any] = ()) -> List[Any]:
        """Return the first column of every row."""
        result = self.execute(query, params)
        return [row[0] for row in result]

    def fetch_map(self, query: str, params: Sequence[Any] = ()) -> Dict[Any, Any]:
        """Return a map from the first column to the second column."""
        result = self.execute(query, params)
        return {row[0]: row[1] for row in result}

    def fetch_single_cell(self, query: str, params: Sequence[Any] = ()) -> Any:
        """Return the first column of the first row, or None."""
        result = self.execute(query, params)
        row = result.first()
        return row[0] if row is not None else None

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------

    @staticmethod
    def get_marks(values: Sequence[Any]) -> str:
        """Return "?,?,?" with one marker per value."""
        return ",".join("?" * len(values))

    def insert_multiple(self, table: str, columns: Sequence[str], values: Sequence[Any]) -> None:
        """
        Insert rows given as one flat list of values.

        Args:
            table: Table name
            columns: Column names; every len(columns) values form one row
            values: Flat list of row values
        """
        self._insert_rows(table, columns, values, "")

    def insert_multiple_with_update(
        self, table: str, columns: Sequence[str], values: Sequence[Any], conflict_clause: str
    ) -> None:
        """
        Insert rows, updating the existing row when a unique key conflicts.

        Args:
            table: Table name
            columns: Column names; every len(columns) values form one row
            values: Flat list of row values
            conflict_clause: Text after ON CONFLICT, e.g.
                "(entity_id, store_id) DO UPDATE SET value = excluded.value"
        """
        self._insert_rows(table, columns, values, f" ON CONFLICT {conflict_clause}")

    def delete_multiple(self, table: str, key_column: str, ids: Sequence[Any]) -> None:
        """Delete the rows whose key column holds one of the ids."""
        if not ids:
            return

        check_identifier(table)
        check_identifier(key_column)

        step = min(self.batch_size, MAX_QUERY_PARAMETERS)
        for start in range(0, len(ids), step):
            chunk = list(ids[start:start + step])
            self.execute(
                f"DELETE FROM {table} WHERE {key_column} IN ({self.get_marks(chunk)})",
                chunk,
            )

    def _insert_rows(
        self, table: str, columns: Sequence[str], values: Sequence[Any], suffix: str
    ) -> None:
        if not values:
            return

        check_identifier(table)
        for column in columns:
            check_identifier(column)

        width = len(columns)
        if len(values) % width != 0:
            raise ValueError(
                f"{len(values)} values do not fill whole rows of {width} columns for {table}"
            )

        column_list = ", ".join(columns)
        row_marks = f"({self.get_marks(columns)})"

        for chunk in self._row_chunks(values, width):
            row_count = len(chunk) // width
            self.execute(
                f"INSERT INTO {table} ({column_list}) VALUES "
                + ", ".join([row_marks] * row_count)
                + suffix,
                chunk,
            )

    def _row_chunks(self, values: Sequence[Any], width: int) -> Iterator[List[Any]]:
        rows_per_statement = max(1, min(self.batch_size, MAX_QUERY_PARAMETERS // width))
        step = rows_per_statement * width
        for start in range(0, len(values), step):
            yield list(values[start:start + step])
