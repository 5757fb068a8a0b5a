"""Public SDK surface for Genoslice.

This module provides a stable import path for analysis sessions.
It re-exports the accessor facade, backends, and typed request models.
"""

from __future__ import annotations

from access.accessor import SliceAccessor, fetch
from access.partitioned_fetch import fetch_partitioned, split_interval
from backends.block_backend import list_layout, open_store, read_block, read_side_table
from backends.interval_backend import fetch_range, iter_range, list_chromosomes, open_indexed
from backends.query_backend import (
    iter_query,
    list_fields,
    list_tables,
    open_database,
    query,
    select_rows,
)
from core.config import GenosliceConfig
from core.errors import (
    GenosliceError,
    IndexMissingError,
    InvalidRequestError,
    LayoutError,
    QueryError,
    RangeError,
    SourceConnectionError,
)
from core.types import (
    BED_LAYOUT,
    GFF_LAYOUT,
    POSITION_LAYOUT,
    VCF_LAYOUT,
    BlockSelector,
    BlockSlice,
    GenomicInterval,
    GroupLocator,
    IntervalLayout,
    Source,
    SqlQuery,
    TableLocator,
    TableSelect,
)
from prepare.interval_index import prepare_interval_file
from prepare.tally_store import create_tally_group, write_tally_block

__all__ = [
    "BED_LAYOUT",
    "BlockSelector",
    "BlockSlice",
    "GFF_LAYOUT",
    "GenomicInterval",
    "GenosliceConfig",
    "GenosliceError",
    "GroupLocator",
    "IndexMissingError",
    "IntervalLayout",
    "InvalidRequestError",
    "LayoutError",
    "POSITION_LAYOUT",
    "QueryError",
    "RangeError",
    "SliceAccessor",
    "Source",
    "SourceConnectionError",
    "SqlQuery",
    "TableLocator",
    "TableSelect",
    "VCF_LAYOUT",
    "create_tally_group",
    "fetch",
    "fetch_partitioned",
    "fetch_range",
    "iter_query",
    "iter_range",
    "list_chromosomes",
    "list_fields",
    "list_layout",
    "list_tables",
    "open_database",
    "open_indexed",
    "open_store",
    "prepare_interval_file",
    "query",
    "read_block",
    "read_side_table",
    "select_rows",
    "split_interval",
    "write_tally_block",
]
