"""Hierarchical array store backend.

This module reads HDF5 stores through h5py in read-only mode. Layout
inspection touches metadata only, and block reads select a hyperslab so
that only the requested range is loaded from disk.

Block ranges are zero-based and half-open: ``[start, end)``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import h5py
import numpy as np
import pyarrow as pa

from core.errors import InvalidRequestError, LayoutError, RangeError, SourceConnectionError
from core.logging_config import get_logger
from core.types import BlockSlice, LayoutNode

_LOGGER = get_logger(__name__)


class HierarchicalStore:
    """Read-only handle on one HDF5 file.

    Instances are scoped resources: use them as context managers or call
    ``close`` on every exit path.
    """

    def __init__(self, path: Path, handle: h5py.File) -> None:
        self.path = path
        self._handle = handle

    @property
    def closed(self) -> bool:
        """Return whether the store has been closed."""
        return self._handle is None

    @property
    def handle(self) -> h5py.File:
        """Return the open h5py file.

        Raises:
            SourceConnectionError: If the store was already closed.
        """
        if self._handle is None:
            raise SourceConnectionError(
                f"Store {self.path} is closed. Re-open the store and retry.",
                source=str(self.path),
            )
        return self._handle

    def close(self) -> None:
        """Close the file; closing twice is a no-op."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "HierarchicalStore":
        """Return this store for use in a ``with`` block."""
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the store when leaving a ``with`` block."""
        self.close()


def open_store(path: str | Path) -> HierarchicalStore:
    """Open an HDF5 store read-only.

    Args:
        path: Store file path.

    Returns:
        Open store handle.

    Raises:
        SourceConnectionError: If the file is missing or not HDF5.
    """
    store_path = Path(path).expanduser()
    if not store_path.is_file():
        raise SourceConnectionError(
            f"Failed to open store at {store_path}: file does not exist.",
            source=str(store_path),
        )
    try:
        handle = h5py.File(store_path, "r")
    except OSError as error:
        raise SourceConnectionError(
            f"Failed to open store at {store_path}: {error}. "
            "Check that the file is a valid HDF5 store.",
            source=str(store_path),
        ) from error
    _LOGGER.info("hierarchical_source_opened", path=str(store_path))
    return HierarchicalStore(store_path, handle)


def list_layout(store: HierarchicalStore) -> LayoutNode:
    """Describe the group and dataset tree without reading payload.

    Args:
        store: Open store.

    Returns:
        Root layout node.
    """
    return _layout_node(store.handle)


def read_side_table(store: HierarchicalStore, group_path: str) -> pa.Table:
    """Read per-sample descriptors attached to a group.

    Descriptors are one-dimensional group attributes of equal length, one
    entry per sample. Scalar attributes are ignored.

    Args:
        store: Open store.
        group_path: Group path inside the store.

    Returns:
        Arrow table with one row per sample and columns sorted by name.

    Raises:
        LayoutError: If the group is absent or descriptor lengths differ.
    """
    group = _require_group(store, group_path)
    columns: dict[str, pa.Array] = {}
    for name in sorted(group.attrs.keys()):
        values = np.asarray(group.attrs[name])
        if values.ndim != 1:
            continue
        columns[name] = _attribute_array(values)
    lengths = {len(array) for array in columns.values()}
    if len(lengths) > 1:
        raise LayoutError(
            f"Sample descriptors of {group_path} in {store.path} have mismatched lengths "
            f"{sorted(lengths)}. Rewrite the descriptors with one entry per sample.",
            source=str(store.path),
            locator=group_path,
        )
    return pa.table(columns)


def read_block(
    store: HierarchicalStore,
    group_path: str,
    dataset_names: Sequence[str],
    start: int,
    end: int,
    axis: int = -1,
) -> BlockSlice:
    """Read one index range from several datasets of a group.

    Args:
        store: Open store.
        group_path: Group holding the datasets.
        dataset_names: Datasets to read.
        start: First index included along ``axis``.
        end: First index excluded along ``axis``.
        axis: Axis the range applies to; the last axis by default.

    Returns:
        Sub-array per dataset plus the group's side table.

    Raises:
        InvalidRequestError: If no dataset names were requested.
        LayoutError: If the group or a dataset is absent, or a dataset name
            is a path rather than a direct child name.
        RangeError: If the range or axis falls outside a dataset's shape.
    """
    if not dataset_names:
        raise InvalidRequestError(
            f"No datasets requested from {group_path} in {store.path}.",
            source=str(store.path),
            locator=group_path,
        )
    group = _require_group(store, group_path)
    arrays: dict[str, np.ndarray] = {}
    for name in dataset_names:
        if "/" in name:
            raise LayoutError(
                f"Dataset name '{name}' is not a direct child of {group_path} in {store.path}. "
                "Pass plain dataset names and locate other groups with their own group path.",
                source=str(store.path),
                locator=group_path,
                selector=name,
            )
        dataset = group.get(name)
        if not isinstance(dataset, h5py.Dataset):
            raise LayoutError(
                f"Dataset '{name}' not found under {group_path} in {store.path}. "
                f"Available entries: {sorted(group.keys())}.",
                source=str(store.path),
                locator=group_path,
                selector=name,
            )
        selection = _block_selection(store, group_path, dataset, start, end, axis)
        arrays[name] = dataset[selection]
    samples = read_side_table(store, group_path)
    _LOGGER.info(
        "block_read",
        path=str(store.path),
        group_path=group_path,
        datasets=list(arrays),
        start=start,
        end=end,
        axis=axis,
    )
    return BlockSlice(
        group_path=group_path,
        start=start,
        end=end,
        axis=axis,
        arrays=arrays,
        samples=samples,
    )


def _block_selection(
    store: HierarchicalStore,
    group_path: str,
    dataset: h5py.Dataset,
    start: int,
    end: int,
    axis: int,
) -> tuple[slice, ...]:
    """Build the hyperslab selection for one dataset.

    Raises:
        RangeError: If the axis or range is outside the dataset's shape.
    """
    shape = dataset.shape
    resolved_axis = axis + len(shape) if axis < 0 else axis
    if not 0 <= resolved_axis < len(shape):
        raise RangeError(
            f"Axis {axis} is outside {dataset.name} with shape {shape} in {store.path}.",
            source=str(store.path),
            locator=group_path,
            selector=(start, end, axis),
        )
    extent = shape[resolved_axis]
    if not 0 <= start < end <= extent:
        raise RangeError(
            f"Range [{start}, {end}) is outside {dataset.name} axis {axis} "
            f"with extent {extent} in {store.path}.",
            source=str(store.path),
            locator=group_path,
            selector=(start, end, axis),
        )
    selection = [slice(None)] * len(shape)
    selection[resolved_axis] = slice(start, end)
    return tuple(selection)


def _require_group(store: HierarchicalStore, group_path: str) -> h5py.Group:
    group = store.handle.get(group_path)
    if not isinstance(group, h5py.Group):
        raise LayoutError(
            f"Group '{group_path}' not found in {store.path}. "
            "Call list_layout to inspect available groups.",
            source=str(store.path),
            locator=group_path,
        )
    return group


def _layout_node(item: Any) -> LayoutNode:
    if isinstance(item, h5py.Dataset):
        return LayoutNode(
            path=item.name,
            kind="dataset",
            shape=tuple(int(size) for size in item.shape),
            dtype=str(item.dtype),
        )
    children = tuple(
        _layout_node(child)
        for child in (item.get(name) for name in sorted(item.keys()))
        if isinstance(child, (h5py.Group, h5py.Dataset))
    )
    return LayoutNode(path=item.name, kind="group", children=children)


def _attribute_array(values: np.ndarray) -> pa.Array:
    if values.dtype.kind == "S":
        return pa.array([value.decode("utf-8") for value in values], type=pa.string())
    if values.dtype.kind == "O":
        return pa.array(
            [value.decode("utf-8") if isinstance(value, bytes) else value for value in values]
        )
    return pa.array(values)
