"""Relational query backend.

This module opens SQLite database files read-only and runs SQL text
verbatim against them, returning results as Arrow tables.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterator, Sequence

import pyarrow as pa

from core.constants import DEFAULT_STREAM_BATCH_SIZE, SQLITE_INTERNAL_PREFIX
from core.errors import InvalidRequestError, QueryError, SourceConnectionError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class RelationalConnection:
    """Read-only connection to one database file.

    Instances are scoped resources: use them as context managers or call
    ``close`` on every exit path.
    """

    def __init__(self, path: Path, connection: sqlite3.Connection) -> None:
        self.path = path
        self._connection = connection

    @property
    def closed(self) -> bool:
        """Return whether the connection has been closed."""
        return self._connection is None

    def cursor(self) -> sqlite3.Cursor:
        """Return a new cursor.

        Raises:
            SourceConnectionError: If the connection was already closed.
        """
        if self._connection is None:
            raise SourceConnectionError(
                f"Connection to {self.path} is closed. Re-open the database and retry.",
                source=str(self.path),
            )
        return self._connection.cursor()

    def close(self) -> None:
        """Close the connection; closing twice is a no-op."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "RelationalConnection":
        """Return this connection for use in a ``with`` block."""
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the connection when leaving a ``with`` block."""
        self.close()


def open_database(path: str | Path) -> RelationalConnection:
    """Open a database file read-only.

    Args:
        path: Database file path.

    Returns:
        Open read-only connection.

    Raises:
        SourceConnectionError: If the file is missing or not a database.
    """
    database_path = Path(path).expanduser()
    if not database_path.is_file():
        raise SourceConnectionError(
            f"Failed to open database at {database_path}: file does not exist. "
            "Provide an existing database file.",
            source=str(database_path),
        )
    try:
        connection = sqlite3.connect(f"{database_path.resolve().as_uri()}?mode=ro", uri=True)
    except sqlite3.Error as error:
        raise SourceConnectionError(
            f"Failed to open database at {database_path}: {error}.",
            source=str(database_path),
        ) from error
    try:
        connection.execute("PRAGMA query_only = ON")
        connection.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
    except sqlite3.DatabaseError as error:
        connection.close()
        raise SourceConnectionError(
            f"Failed to open database at {database_path}: {error}. "
            "Check that the file is a valid database.",
            source=str(database_path),
        ) from error
    _LOGGER.info("relational_source_opened", path=str(database_path))
    return RelationalConnection(database_path, connection)


def list_tables(connection: RelationalConnection) -> frozenset[str]:
    """List user tables and views.

    Args:
        connection: Open connection.

    Returns:
        Table and view names, excluding engine-internal objects.
    """
    rows = _execute(
        connection,
        "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')",
    )
    return frozenset(
        str(row[0]) for row in rows if not str(row[0]).startswith(SQLITE_INTERNAL_PREFIX)
    )


def list_fields(connection: RelationalConnection, table: str) -> tuple[str, ...]:
    """List declared column names of one table or view.

    Args:
        connection: Open connection.
        table: Table or view name.

    Returns:
        Column names in declaration order.

    Raises:
        QueryError: If the table does not exist.
    """
    if table not in list_tables(connection):
        raise QueryError(
            f"Unknown table '{table}' in {connection.path}. "
            "Call list_tables to see available tables.",
            source=str(connection.path),
            locator=table,
        )
    rows = _execute(connection, f"PRAGMA table_info({quote_identifier(table)})")
    return tuple(str(row[1]) for row in rows)


def query(connection: RelationalConnection, sql: str) -> pa.Table:
    """Execute SQL text verbatim and return all rows.

    Args:
        connection: Open connection.
        sql: Read-only SQL statement.

    Returns:
        Result rows as an Arrow table.

    Raises:
        QueryError: If the engine rejects the statement.
    """
    cursor = _open_cursor(connection, sql, ())
    try:
        names = _column_names(cursor)
        rows = cursor.fetchall()
    except sqlite3.Error as error:
        raise _query_error(connection, sql, error) from error
    finally:
        cursor.close()
    table = _rows_to_table(names, rows)
    _LOGGER.info("query_executed", path=str(connection.path), row_count=table.num_rows)
    return table


def iter_query(
    connection: RelationalConnection,
    sql: str,
    batch_size: int = DEFAULT_STREAM_BATCH_SIZE,
) -> Iterator[pa.RecordBatch]:
    """Execute SQL text and yield rows in bounded batches.

    The cursor stays open only while the caller keeps pulling batches.

    Args:
        connection: Open connection.
        sql: Read-only SQL statement.
        batch_size: Maximum rows per batch.

    Returns:
        Lazy iterator of Arrow record batches of at most ``batch_size`` rows.

    Raises:
        InvalidRequestError: If ``batch_size`` is below 1.
        QueryError: If the engine rejects the statement.
    """
    if batch_size < 1:
        raise InvalidRequestError(
            f"Invalid batch size {batch_size}: expected a positive integer.",
            source=str(connection.path),
            selector=sql,
        )
    return _iter_batches(connection, sql, batch_size)


def _iter_batches(
    connection: RelationalConnection,
    sql: str,
    batch_size: int,
) -> Iterator[pa.RecordBatch]:
    cursor = _open_cursor(connection, sql, ())
    try:
        names = _column_names(cursor)
        while True:
            try:
                rows = cursor.fetchmany(batch_size)
            except sqlite3.Error as error:
                raise _query_error(connection, sql, error) from error
            if not rows:
                return
            yield pa.RecordBatch.from_arrays(_rows_to_arrays(names, rows), names=names)
    finally:
        cursor.close()


def select_rows(
    connection: RelationalConnection,
    table: str,
    columns: Sequence[str] = (),
    where: str | None = None,
    parameters: Sequence[object] = (),
    limit: int | None = None,
) -> pa.Table:
    """Project and filter rows from one table.

    Args:
        connection: Open connection.
        table: Table or view name.
        columns: Columns to project; all when empty.
        where: Optional filter expression with ``?`` placeholders.
        parameters: Values bound to the placeholders.
        limit: Optional maximum row count.

    Returns:
        Matching rows as an Arrow table.

    Raises:
        QueryError: If the table, a column, or the filter is invalid.
    """
    declared = list_fields(connection, table)
    unknown = [name for name in columns if name not in declared]
    if unknown:
        raise QueryError(
            f"Unknown columns {unknown} in table '{table}' of {connection.path}. "
            f"Declared columns: {list(declared)}.",
            source=str(connection.path),
            locator=table,
        )
    projection = ", ".join(quote_identifier(name) for name in columns) if columns else "*"
    sql = f"SELECT {projection} FROM {quote_identifier(table)}"
    if where:
        sql += f" WHERE {where}"
    if limit is not None:
        if limit < 0:
            raise QueryError(
                f"Invalid limit {limit} for table '{table}': expected a non-negative integer.",
                source=str(connection.path),
                locator=table,
            )
        sql += f" LIMIT {int(limit)}"
    cursor = _open_cursor(connection, sql, tuple(parameters))
    try:
        names = _column_names(cursor)
        rows = cursor.fetchall()
    except sqlite3.Error as error:
        raise _query_error(connection, sql, error) from error
    finally:
        cursor.close()
    result = _rows_to_table(names, rows)
    _LOGGER.info(
        "table_selected",
        path=str(connection.path),
        table=table,
        row_count=result.num_rows,
    )
    return result


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQL text."""
    return '"' + name.replace('"', '""') + '"'


def _execute(connection: RelationalConnection, sql: str) -> list[Any]:
    cursor = _open_cursor(connection, sql, ())
    try:
        return cursor.fetchall()
    finally:
        cursor.close()


def _open_cursor(
    connection: RelationalConnection,
    sql: str,
    parameters: tuple[object, ...],
) -> sqlite3.Cursor:
    """Create a cursor and execute a statement on it.

    Raises:
        QueryError: If the engine rejects the statement.
    """
    cursor = connection.cursor()
    try:
        cursor.execute(sql, parameters)
    except (sqlite3.Error, sqlite3.Warning) as error:
        cursor.close()
        raise _query_error(connection, sql, error) from error
    return cursor


def _column_names(cursor: sqlite3.Cursor) -> list[str]:
    if cursor.description is None:
        return []
    return [str(column[0]) for column in cursor.description]


def _rows_to_table(names: list[str], rows: list[tuple[Any, ...]]) -> pa.Table:
    return pa.Table.from_arrays(_rows_to_arrays(names, rows), names=names)


def _rows_to_arrays(names: list[str], rows: list[tuple[Any, ...]]) -> list[pa.Array]:
    """Build one Arrow array per result column.

    Columns mixing storage classes are rendered as strings.
    """
    arrays: list[pa.Array] = []
    for index in range(len(names)):
        values = [row[index] for row in rows]
        try:
            arrays.append(pa.array(values))
        except (pa.ArrowInvalid, pa.ArrowTypeError):
            arrays.append(pa.array([None if value is None else str(value) for value in values]))
    return arrays


def _query_error(
    connection: RelationalConnection,
    sql: str,
    error: Exception,
) -> QueryError:
    return QueryError(
        f"Query against {connection.path} failed: {error}.",
        source=str(connection.path),
        selector=sql,
    )
