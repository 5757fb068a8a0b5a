"""Unit tests for the relational query backend."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from backends.query_backend import (
    iter_query,
    list_fields,
    list_tables,
    open_database,
    query,
    select_rows,
)
from core.errors import InvalidRequestError, QueryError, SourceConnectionError


def test_list_tables_includes_tables_and_views(database_path: Path) -> None:
    """Listing should return user tables and views."""
    with open_database(database_path) as connection:
        tables = list_tables(connection)

    assert tables == {"genes", "variants", "gene_variant_counts"}


def test_query_limit_bounds_rows_to_table_columns(database_path: Path) -> None:
    """LIMIT should bound rows, all within the table's declared columns."""
    with open_database(database_path) as connection:
        declared = list_fields(connection, "variants")
        result = query(connection, "select * from variants limit 10")

    assert result.num_rows == 10
    assert tuple(result.column_names) == declared


def test_query_supports_joins_and_filters(database_path: Path) -> None:
    """Arbitrary SQL should run verbatim against the engine."""
    sql = (
        "SELECT g.gene_id, g.chromosome, v.variant_id FROM genes g "
        "JOIN variants v ON v.gene_id = g.gene_id WHERE g.gene_id = 'TP53' ORDER BY v.variant_id"
    )
    with open_database(database_path) as connection:
        result = query(connection, sql)

    assert set(result.column("gene_id").to_pylist()) == {"TP53"}
    assert result.column("variant_id").to_pylist()[:3] == [1, 3, 5]


def test_query_keeps_columns_for_empty_result(database_path: Path) -> None:
    """Empty results should still carry the projected column names."""
    with open_database(database_path) as connection:
        result = query(connection, "SELECT gene_id, start FROM genes WHERE 0")

    assert result.num_rows == 0
    assert result.column_names == ["gene_id", "start"]


def test_query_raises_for_missing_table(database_path: Path) -> None:
    """Unknown tables should fail with the engine message."""
    with open_database(database_path) as connection:
        with pytest.raises(QueryError, match="no such table"):
            query(connection, "SELECT * FROM transcripts")


def test_query_raises_for_malformed_sql(database_path: Path) -> None:
    """Malformed SQL should fail with QueryError carrying the SQL text."""
    with open_database(database_path) as connection:
        with pytest.raises(QueryError) as raised:
            query(connection, "SELEC gene_id FROM genes")

    assert raised.value.selector == "SELEC gene_id FROM genes"


def test_query_rejects_writes(database_path: Path) -> None:
    """Connections should be read-only."""
    with open_database(database_path) as connection:
        with pytest.raises(QueryError):
            query(connection, "DELETE FROM genes")

    verify = sqlite3.connect(database_path)
    try:
        assert verify.execute("SELECT COUNT(*) FROM genes").fetchone()[0] == 3
    finally:
        verify.close()


def test_iter_query_yields_bounded_batches(database_path: Path) -> None:
    """Batched reads should respect the batch size and cover all rows."""
    with open_database(database_path) as connection:
        batches = list(iter_query(connection, "SELECT * FROM variants", batch_size=10))

    assert [batch.num_rows for batch in batches] == [10, 10, 5]


@pytest.mark.parametrize("batch_size", [0, -1])
def test_iter_query_rejects_non_positive_batch_size(database_path: Path, batch_size: int) -> None:
    """Non-positive batch sizes should fail before any batch is requested."""
    with open_database(database_path) as connection:
        with pytest.raises(InvalidRequestError):
            iter_query(connection, "SELECT * FROM variants", batch_size=batch_size)


def test_select_rows_projects_filters_and_limits(database_path: Path) -> None:
    """Table selection should bind parameters and apply the limit."""
    with open_database(database_path) as connection:
        result = select_rows(
            connection,
            "variants",
            columns=("variant_id", "score"),
            where="gene_id = ?",
            parameters=("BRCA2",),
            limit=3,
        )

    assert result.column_names == ["variant_id", "score"]
    assert result.column("variant_id").to_pylist() == [0, 2, 4]


def test_select_rows_raises_for_unknown_column(database_path: Path) -> None:
    """Unknown projected columns should fail instead of yielding literals."""
    with open_database(database_path) as connection:
        with pytest.raises(QueryError):
            select_rows(connection, "genes", columns=("symbol",))


def test_list_fields_raises_for_unknown_table(database_path: Path) -> None:
    """Field listing should fail for unknown tables."""
    with open_database(database_path) as connection:
        with pytest.raises(QueryError):
            list_fields(connection, "transcripts")


def test_query_renders_mixed_storage_classes_as_strings(tmp_path: Path) -> None:
    """Columns mixing integers and text should still build a table."""
    path = tmp_path / "mixed.sqlite"
    writer = sqlite3.connect(path)
    try:
        writer.execute("CREATE TABLE notes (value)")
        writer.executemany("INSERT INTO notes VALUES (?)", [(1,), ("two",)])
        writer.commit()
    finally:
        writer.close()

    with open_database(path) as connection:
        result = query(connection, "SELECT value FROM notes")

    assert result.column("value").to_pylist() == ["1", "two"]


def test_open_database_raises_for_missing_file(tmp_path: Path) -> None:
    """Opening should fail when the file does not exist."""
    with pytest.raises(SourceConnectionError):
        open_database(tmp_path / "missing.sqlite")


def test_open_database_raises_for_non_database_file(tmp_path: Path) -> None:
    """Opening should fail when the file is not a database."""
    path = tmp_path / "notes.txt"
    path.write_text("this is not a database file, just some text " * 20, encoding="utf-8")

    with pytest.raises(SourceConnectionError):
        open_database(path)


def test_closed_connection_raises(database_path: Path) -> None:
    """Queries after close should fail with a connection error."""
    connection = open_database(database_path)
    connection.close()

    with pytest.raises(SourceConnectionError):
        query(connection, "SELECT 1")

    assert connection.closed
