"""Interval-indexed file backend.

This module reads bgzip-compressed, tabix-indexed text files through
pysam. Region reads seek through the index instead of scanning the
file, and results can be streamed as a restartable record sequence.

Coordinates passed in and returned are one-based and closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import pyarrow as pa
import pysam

from core.constants import (
    DEFAULT_STREAM_BATCH_SIZE,
    FIELD_COLUMN_PREFIX,
    TABIX_INDEX_SUFFIXES,
    TABIX_META_CHAR,
)
from core.errors import (
    IndexMissingError,
    InvalidRequestError,
    SourceConnectionError,
)
from core.logging_config import get_logger
from core.types import BED_LAYOUT, GenomicInterval, IntervalLayout, IntervalRecord

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class IndexedSource:
    """Validated interval file with its companion index.

    Attributes:
        path: Compressed data file.
        index_path: Companion tabix or CSI index.
        layout: Coordinate column layout.
        chromosomes: Chromosome names present in the index.
        field_count: Non-coordinate fields per record, taken from the first
            data line; every slice of the source has this many
            ``field_<n>`` columns.
    """

    path: Path
    index_path: Path
    layout: IntervalLayout
    chromosomes: tuple[str, ...]
    field_count: int = 0


def open_indexed(path: str | Path, layout: IntervalLayout = BED_LAYOUT) -> IndexedSource:
    """Validate an interval file and its index.

    The file must already be sorted, compressed, and indexed; nothing is
    sorted or indexed here.

    Args:
        path: Compressed data file path.
        layout: Coordinate column layout of the file.

    Returns:
        Indexed source descriptor.

    Raises:
        SourceConnectionError: If the data file is missing or unreadable.
        IndexMissingError: If the index is absent or older than the data.
    """
    data_path = Path(path).expanduser()
    if not data_path.is_file():
        raise SourceConnectionError(
            f"Failed to open interval file at {data_path}: file does not exist.",
            source=str(data_path),
        )
    index_path = _find_fresh_index(data_path)
    tabix_file = _open_tabix(data_path, index_path)
    try:
        chromosomes = tuple(str(name) for name in tabix_file.contigs)
        field_count = _first_record_field_count(tabix_file, chromosomes, layout, data_path)
    finally:
        tabix_file.close()
    _LOGGER.info(
        "interval_source_opened",
        path=str(data_path),
        index_path=str(index_path),
        chromosome_count=len(chromosomes),
        field_count=field_count,
    )
    return IndexedSource(
        path=data_path,
        index_path=index_path,
        layout=layout,
        chromosomes=chromosomes,
        field_count=field_count,
    )


def list_chromosomes(source: IndexedSource) -> tuple[str, ...]:
    """Return chromosome names present in the index."""
    return source.chromosomes


def fetch_range(source: IndexedSource, chromosome: str, start: int, end: int) -> pa.Table:
    """Read every record overlapping ``[start, end]`` on a chromosome.

    Args:
        source: Indexed source.
        chromosome: Chromosome name.
        start: One-based first position.
        end: One-based last position.

    Returns:
        Arrow table with ``chromosome``, ``start``, ``end`` and ``field_<n>``
        columns for the remaining raw fields.

    Raises:
        InvalidRequestError: If coordinates are invalid.
        IndexMissingError: If the index disappeared or went stale.
    """
    table = iter_range(source, chromosome, start, end).to_table()
    _LOGGER.info(
        "interval_range_fetched",
        path=str(source.path),
        chromosome=chromosome,
        start=start,
        end=end,
        row_count=table.num_rows,
    )
    return table


def iter_range(
    source: IndexedSource,
    chromosome: str,
    start: int,
    end: int,
    batch_size: int = DEFAULT_STREAM_BATCH_SIZE,
) -> "RangeStream":
    """Build a lazy, restartable stream over one region.

    Raises:
        InvalidRequestError: If coordinates are invalid.
    """
    interval = GenomicInterval(chromosome=chromosome, start=start, end=end)
    validate_interval(interval, source=str(source.path))
    return RangeStream(source, interval, batch_size)


def validate_interval(interval: GenomicInterval, source: str | None = None) -> None:
    """Reject intervals with non-positive or inverted coordinates.

    Raises:
        InvalidRequestError: If coordinates are invalid.
    """
    if interval.start < 1 or interval.end < interval.start:
        raise InvalidRequestError(
            f"Invalid interval {interval.chromosome}:{interval.start}-{interval.end}: "
            "expected 1 <= start <= end.",
            source=source,
            selector=interval,
        )


class RangeStream:
    """Finite, restartable sequence of records overlapping one interval.

    Every iteration re-validates the index, opens its own tabix handle,
    and closes it when the iteration finishes or is abandoned.
    """

    def __init__(
        self,
        source: IndexedSource,
        interval: GenomicInterval,
        batch_size: int = DEFAULT_STREAM_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise InvalidRequestError(
                f"Invalid batch size {batch_size}: expected a positive integer.",
                source=str(source.path),
                selector=interval,
            )
        self.source = source
        self.interval = interval
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[IntervalRecord]:
        index_path = _find_fresh_index(self.source.path)
        tabix_file = _open_tabix(self.source.path, index_path)
        try:
            if self.interval.chromosome not in tabix_file.contigs:
                return
            lines = tabix_file.fetch(
                self.interval.chromosome,
                self.interval.start - 1,
                self.interval.end,
            )
            for line in lines:
                record = parse_record(line, self.source.layout, self.source.path)
                if self.interval.overlaps(record.chromosome, record.start, record.end):
                    yield record
        finally:
            tabix_file.close()

    def batches(self) -> Iterator[pa.RecordBatch]:
        """Yield Arrow batches of at most ``batch_size`` records.

        Every batch shares the schema given by ``source.field_count``.
        """
        pending: list[IntervalRecord] = []
        for record in self:
            pending.append(record)
            if len(pending) == self.batch_size:
                yield records_to_batch(pending, self.source)
                pending = []
        if pending:
            yield records_to_batch(pending, self.source)

    def to_table(self) -> pa.Table:
        """Materialize the whole stream as one Arrow table."""
        return pa.Table.from_batches([records_to_batch(list(self), self.source)])


def parse_record(line: str, layout: IntervalLayout, path: Path) -> IntervalRecord:
    """Parse one tab-separated line into a one-based closed record.

    Raises:
        SourceConnectionError: If coordinate columns are missing or invalid.
    """
    fields = tuple(line.rstrip("\n").split("\t"))
    try:
        chromosome = fields[layout.sequence_column]
        start = int(fields[layout.start_column])
        end = int(fields[layout.end_column])
    except (IndexError, ValueError) as error:
        raise SourceConnectionError(
            f"Malformed record in {path}: {line!r}. "
            "Check the coordinate column layout used to open the file.",
            source=str(path),
        ) from error
    if layout.zero_based:
        start += 1
    return IntervalRecord(chromosome=chromosome, start=start, end=end, fields=fields)


def records_to_batch(records: list[IntervalRecord], source: IndexedSource) -> pa.RecordBatch:
    """Build an Arrow batch from parsed records.

    Non-coordinate fields become ``source.field_count`` string columns named
    ``field_<n>``, padded with nulls for shorter lines.

    Raises:
        SourceConnectionError: If a record has more fields than the source.
    """
    width = source.field_count
    extras = [extra_fields(record.fields, source.layout) for record in records]
    for record, values in zip(records, extras):
        if len(values) > width:
            raise SourceConnectionError(
                f"Record {record.chromosome}:{record.start}-{record.end} in {source.path} "
                f"has {len(values)} non-coordinate fields, but the first record has {width}. "
                "Rewrite the file with the same column count on every line.",
                source=str(source.path),
            )
    arrays: list[pa.Array] = [
        pa.array([record.chromosome for record in records], type=pa.string()),
        pa.array([record.start for record in records], type=pa.int64()),
        pa.array([record.end for record in records], type=pa.int64()),
    ]
    names = ["chromosome", "start", "end"]
    for column in range(width):
        arrays.append(
            pa.array(
                [values[column] if column < len(values) else None for values in extras],
                type=pa.string(),
            )
        )
        names.append(f"{FIELD_COLUMN_PREFIX}{column}")
    return pa.RecordBatch.from_arrays(arrays, names=names)


def extra_fields(fields: tuple[str, ...], layout: IntervalLayout) -> list[str]:
    """Return the raw fields that are not coordinate columns."""
    coordinate_columns = {layout.sequence_column, layout.start_column, layout.end_column}
    return [value for index, value in enumerate(fields) if index not in coordinate_columns]


def index_candidates(data_path: Path) -> list[Path]:
    """Return possible companion index paths for a data file."""
    return [data_path.with_name(data_path.name + suffix) for suffix in TABIX_INDEX_SUFFIXES]


def _find_fresh_index(data_path: Path) -> Path:
    """Locate an index that is at least as new as the data file.

    Raises:
        IndexMissingError: If no index exists or the index is stale.
    """
    existing = [candidate for candidate in index_candidates(data_path) if candidate.is_file()]
    if not existing:
        raise IndexMissingError(
            f"No index found for {data_path}. "
            "Sort, compress, and index the file before reading it.",
            source=str(data_path),
        )
    index_path = existing[0]
    if index_path.stat().st_mtime < data_path.stat().st_mtime:
        raise IndexMissingError(
            f"Index {index_path} is older than {data_path}. "
            "Rebuild the index after modifying the data file.",
            source=str(data_path),
        )
    return index_path


def _first_record_field_count(
    tabix_file: Any,
    chromosomes: tuple[str, ...],
    layout: IntervalLayout,
    data_path: Path,
) -> int:
    if not chromosomes:
        return 0
    for line in tabix_file.fetch(chromosomes[0]):
        if line.startswith(TABIX_META_CHAR):
            continue
        return len(extra_fields(parse_record(line, layout, data_path).fields, layout))
    return 0


def _open_tabix(data_path: Path, index_path: Path) -> pysam.TabixFile:
    """Open a pysam tabix handle.

    Raises:
        SourceConnectionError: If the file cannot be opened as indexed data.
    """
    try:
        return pysam.TabixFile(str(data_path), index=str(index_path))
    except (OSError, ValueError) as error:
        raise SourceConnectionError(
            f"Failed to open interval file at {data_path}: {error}. "
            "Check that the file is bgzip-compressed and indexed.",
            source=str(data_path),
        ) from error
