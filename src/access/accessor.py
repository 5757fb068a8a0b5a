"""Accessor facade over the three backends.

This module dispatches ``fetch(source, locator, selector)`` by source
kind and returns the backend result unchanged. ``SliceAccessor`` keeps a
bounded cache of open handles and releases all of them on exit.
"""

from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import Any, Union

import pyarrow as pa

from access.partitioned_fetch import fetch_partitioned
from access.request_validation import require_kind, validate_request
from backends.block_backend import (
    HierarchicalStore,
    list_layout,
    open_store,
    read_block,
)
from backends.interval_backend import (
    IndexedSource,
    RangeStream,
    fetch_range,
    iter_range,
    list_chromosomes,
    open_indexed,
)
from backends.query_backend import (
    RelationalConnection,
    list_tables,
    open_database,
    query,
    select_rows,
)
from core.config import GenosliceConfig
from core.constants import (
    SOURCE_KIND_INTERVAL,
    SOURCE_KIND_RELATIONAL,
)
from core.errors import InvalidRequestError
from core.logging_config import get_logger
from core.types import (
    BlockSelector,
    BlockSlice,
    GenomicInterval,
    GroupLocator,
    LayoutNode,
    Locator,
    Selector,
    Source,
    SqlQuery,
    TableLocator,
    TableSelect,
)

_LOGGER = get_logger(__name__)

Slice = Union[pa.Table, BlockSlice]


def fetch(
    source: Source,
    locator: Locator,
    selector: Selector,
    config: GenosliceConfig | None = None,
) -> Slice:
    """Fetch one slice, opening and closing the source around the read.

    Args:
        source: Source to read.
        locator: Table or group locator; ``None`` where the kind takes none.
        selector: Subset to read.
        config: Optional runtime configuration.

    Returns:
        Arrow table for relational and interval sources, ``BlockSlice`` for
        hierarchical sources.

    Raises:
        InvalidRequestError: If locator or selector does not fit the source.
        GenosliceError: Any backend failure, unchanged.
    """
    with SliceAccessor(config) as accessor:
        return accessor.fetch(source, locator, selector)


class SliceAccessor:
    """Dispatching accessor with a bounded cache of open handles.

    Handles are evicted least-recently-used first once more than
    ``config.max_open_handles`` are open, and every remaining handle is
    closed by ``close`` or on leaving a ``with`` block.
    """

    def __init__(self, config: GenosliceConfig | None = None) -> None:
        self._config = config or GenosliceConfig()
        self._handles: OrderedDict[tuple[str, str, object], Any] = OrderedDict()

    @property
    def open_handle_count(self) -> int:
        return len(self._handles)

    def fetch(self, source: Source, locator: Locator, selector: Selector) -> Slice:
        """Dispatch one request to the backend matching ``source.kind``.

        Raises:
            InvalidRequestError: If locator or selector does not fit the source.
        """
        validate_request(source, locator, selector)
        if source.kind == SOURCE_KIND_RELATIONAL:
            return self._fetch_relational(source, locator, selector)
        if isinstance(selector, GenomicInterval):
            return fetch_range(
                self._interval_source(source),
                selector.chromosome,
                selector.start,
                selector.end,
            )
        if not isinstance(locator, GroupLocator) or not isinstance(selector, BlockSelector):
            raise InvalidRequestError(
                f"Request does not fit {source.kind} source {source.path}.",
                source=str(source.path),
                locator=locator,
                selector=selector,
            )
        return read_block(
            self._store(source),
            locator.group_path,
            selector.datasets,
            selector.start,
            selector.end,
            selector.axis,
        )

    def stream(self, source: Source, selector: GenomicInterval) -> RangeStream:
        """Return a lazy, restartable record stream over one interval.

        Raises:
            InvalidRequestError: If the source is not an interval source.
        """
        require_kind(source, SOURCE_KIND_INTERVAL, selector=selector)
        validate_request(source, None, selector)
        return iter_range(
            self._interval_source(source),
            selector.chromosome,
            selector.start,
            selector.end,
            batch_size=self._config.stream_batch_size,
        )

    def fetch_partitioned(
        self,
        source: Source,
        selector: GenomicInterval,
        parts: int | None = None,
    ) -> pa.Table:
        """Read one interval as disjoint parts on independent workers.

        Raises:
            InvalidRequestError: If the source is not an interval source.
        """
        require_kind(source, SOURCE_KIND_INTERVAL, selector=selector)
        validate_request(source, None, selector)
        return fetch_partitioned(
            self._interval_source(source),
            selector,
            parts=parts or self._config.max_workers,
            max_workers=self._config.max_workers,
        )

    def describe(self, source: Source) -> frozenset[str] | tuple[str, ...] | LayoutNode:
        """Inspect a source without reading payload.

        Returns:
            Table names, chromosome names, or the group tree, by source kind.

        Raises:
            InvalidRequestError: If the source kind is unknown.
        """
        require_kind(source, source.kind)
        if source.kind == SOURCE_KIND_RELATIONAL:
            return list_tables(self._connection(source))
        if source.kind == SOURCE_KIND_INTERVAL:
            return list_chromosomes(self._interval_source(source))
        return list_layout(self._store(source))

    def close(self) -> None:
        """Close every cached handle."""
        while self._handles:
            _, handle = self._handles.popitem(last=False)
            _close_handle(handle)

    def __enter__(self) -> "SliceAccessor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _fetch_relational(
        self,
        source: Source,
        locator: Locator,
        selector: Selector,
    ) -> pa.Table:
        connection = self._connection(source)
        if isinstance(selector, SqlQuery):
            return query(connection, selector.sql)
        if not isinstance(locator, TableLocator) or not isinstance(selector, TableSelect):
            raise InvalidRequestError(
                f"Request does not fit {source.kind} source {source.path}.",
                source=str(source.path),
                locator=locator,
                selector=selector,
            )
        return select_rows(
            connection,
            locator.table,
            columns=selector.columns,
            where=selector.where,
            parameters=selector.parameters,
            limit=selector.limit,
        )

    def _connection(self, source: Source) -> RelationalConnection:
        return self._acquire(source, None, open_database)

    def _interval_source(self, source: Source) -> IndexedSource:
        return self._acquire(
            source,
            source.layout,
            lambda path: open_indexed(path, source.layout),
        )

    def _store(self, source: Source) -> HierarchicalStore:
        return self._acquire(source, None, open_store)

    def _acquire(self, source: Source, variant: object, opener: Any) -> Any:
        key = (source.kind, str(Path(source.path).expanduser().resolve()), variant)
        handle = self._handles.get(key)
        if handle is not None:
            self._handles.move_to_end(key)
            return handle
        handle = opener(source.path)
        self._handles[key] = handle
        while len(self._handles) > self._config.max_open_handles:
            evicted_key, evicted = self._handles.popitem(last=False)
            _close_handle(evicted)
            _LOGGER.debug("handle_evicted", kind=evicted_key[0], path=evicted_key[1])
        return handle


def _close_handle(handle: Any) -> None:
    close = getattr(handle, "close", None)
    if close is not None:
        close()
