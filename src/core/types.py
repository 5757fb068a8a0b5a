"""Shared typed models.

This module defines immutable sources, locators, selectors, and slice
models used by the backends and the accessor facade to keep interfaces
explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Mapping, Union

if TYPE_CHECKING:
    import numpy as np
    import pyarrow as pa

SourceKind = Literal["relational", "interval", "hierarchical"]
LayoutNodeKind = Literal["group", "dataset"]


@dataclass(frozen=True)
class TableLocator:
    """Names one table or view inside a relational source."""

    table: str


@dataclass(frozen=True)
class GroupLocator:
    """Names one group inside a hierarchical source."""

    group_path: str


@dataclass(frozen=True)
class SqlQuery:
    """Arbitrary read-only SQL executed verbatim."""

    sql: str


@dataclass(frozen=True)
class TableSelect:
    """Projection and filter against the table named by a locator.

    Attributes:
        columns: Columns to project; all columns when empty.
        where: Optional SQL filter expression using ``?`` placeholders.
        parameters: Values bound to the ``where`` placeholders.
        limit: Optional maximum row count.
    """

    columns: tuple[str, ...] = ()
    where: str | None = None
    parameters: tuple[object, ...] = ()
    limit: int | None = None


@dataclass(frozen=True)
class GenomicInterval:
    """One-based closed genomic interval ``[start, end]``."""

    chromosome: str
    start: int
    end: int

    def overlaps(self, chromosome: str, start: int, end: int) -> bool:
        """Return whether a one-based closed record interval overlaps this one."""
        return chromosome == self.chromosome and start <= self.end and end >= self.start


@dataclass(frozen=True)
class BlockSelector:
    """Zero-based half-open index range ``[start, end)`` along one axis.

    Attributes:
        datasets: Dataset names to read under the located group.
        start: First index included.
        end: First index excluded.
        axis: Axis the range applies to; the last axis by default.
    """

    datasets: tuple[str, ...]
    start: int
    end: int
    axis: int = -1


@dataclass(frozen=True)
class IntervalLayout:
    """Column layout of an interval-indexed text file.

    Attributes:
        sequence_column: Zero-based column holding the chromosome.
        start_column: Zero-based column holding the start coordinate.
        end_column: Zero-based column holding the end coordinate.
        zero_based: Whether the file uses zero-based half-open coordinates.
    """

    sequence_column: int
    start_column: int
    end_column: int
    zero_based: bool = False


BED_LAYOUT = IntervalLayout(sequence_column=0, start_column=1, end_column=2, zero_based=True)
GFF_LAYOUT = IntervalLayout(sequence_column=0, start_column=3, end_column=4)
POSITION_LAYOUT = IntervalLayout(sequence_column=0, start_column=1, end_column=1)
# Records match by POS only; deletions are not widened by their REF length.
VCF_LAYOUT = IntervalLayout(sequence_column=0, start_column=1, end_column=1)


@dataclass(frozen=True)
class Source:
    """External read-only data container.

    Attributes:
        path: Filesystem path of the container.
        kind: Backend tag used for dispatch.
        layout: Coordinate column layout, used by interval sources only.
    """

    path: Path
    kind: SourceKind
    layout: IntervalLayout = BED_LAYOUT


@dataclass(frozen=True)
class IntervalRecord:
    """One record read from an interval source.

    Attributes:
        chromosome: Chromosome name.
        start: One-based first covered position.
        end: One-based last covered position.
        fields: Raw tab-separated fields of the line.
    """

    chromosome: str
    start: int
    end: int
    fields: tuple[str, ...]


@dataclass(frozen=True)
class LayoutNode:
    """Group or dataset entry in a hierarchical store.

    Attributes:
        path: Absolute path inside the store.
        kind: ``group`` or ``dataset``.
        shape: Dataset dimensions; empty for groups.
        dtype: Dataset element type; ``None`` for groups.
        children: Child nodes ordered by name.
    """

    path: str
    kind: LayoutNodeKind
    shape: tuple[int, ...] = ()
    dtype: str | None = None
    children: tuple["LayoutNode", ...] = ()

    def find(self, path: str) -> "LayoutNode | None":
        """Return the node at ``path`` within this subtree, if present."""
        if self.path == path:
            return self
        for child in self.children:
            found = child.find(path)
            if found is not None:
                return found
        return None


@dataclass(frozen=True)
class BlockSlice:
    """Sub-arrays read from one group plus its per-sample descriptors.

    Attributes:
        group_path: Group the arrays were read from.
        start: First index included along ``axis``.
        end: First index excluded along ``axis``.
        axis: Axis the range was applied to.
        arrays: Sub-array per requested dataset name.
        samples: Per-sample side table of the group.
    """

    group_path: str
    start: int
    end: int
    axis: int
    arrays: Mapping[str, "np.ndarray"] = field(default_factory=dict)
    samples: "pa.Table | None" = None


Locator = Union[TableLocator, GroupLocator, None]
Selector = Union[SqlQuery, TableSelect, GenomicInterval, BlockSelector]
