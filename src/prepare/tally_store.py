"""Tally store construction.

This module creates HDF5 groups laid out like nucleotide tally files:
per-base counts, coverages, and deletions indexed by sample, strand,
and genomic position, plus per-sample descriptors stored as group
attributes. Datasets are chunked along position so unwritten regions
allocate no storage.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

import h5py
import numpy as np

from core.constants import (
    DEFAULT_TALLY_CHUNK_POSITIONS,
    TALLY_BASES,
    TALLY_COUNTS_DATASET,
    TALLY_COVERAGES_DATASET,
    TALLY_DELETIONS_DATASET,
    TALLY_REFERENCE_DATASET,
    TALLY_STRANDS,
)
from core.errors import InvalidRequestError, LayoutError, RangeError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def create_tally_group(
    path: str | Path,
    group_path: str,
    samples: Mapping[str, Sequence[object]],
    positions: int,
    bases: Sequence[str] = TALLY_BASES,
    chunk_positions: int = DEFAULT_TALLY_CHUNK_POSITIONS,
    dtype: str = "int32",
) -> None:
    """Create one tally group with empty datasets and sample descriptors.

    Args:
        path: HDF5 file path, created when absent.
        group_path: Group to create, e.g. ``/ExampleStudy/22``.
        samples: Descriptor columns, one value per sample in each.
        positions: Length of the position axis.
        bases: Labels of the base axis of ``Counts``.
        chunk_positions: Chunk length along the position axis.
        dtype: Element type of the tally datasets.

    Raises:
        InvalidRequestError: If descriptors are empty or uneven, or sizes are invalid.
    """
    sample_count = _sample_count(samples, group_path)
    if positions < 1 or chunk_positions < 1 or not bases:
        raise InvalidRequestError(
            f"Invalid tally dimensions for {group_path}: positions={positions}, "
            f"chunk_positions={chunk_positions}, bases={len(bases)}.",
            source=str(path),
            locator=group_path,
        )
    chunk = min(chunk_positions, positions)
    with h5py.File(Path(path).expanduser(), "a") as handle:
        group = handle.require_group(group_path)
        counts = group.create_dataset(
            TALLY_COUNTS_DATASET,
            shape=(len(bases), sample_count, TALLY_STRANDS, positions),
            dtype=dtype,
            chunks=(len(bases), sample_count, TALLY_STRANDS, chunk),
            compression="gzip",
            fillvalue=0,
        )
        counts.attrs["bases"] = np.array(list(bases), dtype=h5py.string_dtype())
        for name in (TALLY_COVERAGES_DATASET, TALLY_DELETIONS_DATASET):
            group.create_dataset(
                name,
                shape=(sample_count, TALLY_STRANDS, positions),
                dtype=dtype,
                chunks=(sample_count, TALLY_STRANDS, chunk),
                compression="gzip",
                fillvalue=0,
            )
        group.create_dataset(
            TALLY_REFERENCE_DATASET,
            shape=(positions,),
            dtype="int8",
            chunks=(chunk,),
            compression="gzip",
            fillvalue=0,
        )
        for name, values in samples.items():
            group.attrs[name] = _attribute_values(values)
    _LOGGER.info(
        "tally_group_created",
        path=str(path),
        group_path=group_path,
        sample_count=sample_count,
        positions=positions,
    )


def write_tally_block(
    path: str | Path,
    group_path: str,
    dataset_name: str,
    start: int,
    values: np.ndarray,
) -> None:
    """Write values into a dataset starting at ``start`` on the position axis.

    Args:
        path: HDF5 file path.
        group_path: Group holding the dataset.
        dataset_name: Dataset to write.
        start: Zero-based first position written.
        values: Array matching the dataset on every axis but the last.

    Raises:
        LayoutError: If the group or dataset is absent.
        InvalidRequestError: If leading dimensions do not match.
        RangeError: If the block extends past the position axis.
    """
    block = np.asarray(values)
    with h5py.File(Path(path).expanduser(), "a") as handle:
        dataset = handle.get(f"{group_path.rstrip('/')}/{dataset_name}")
        if not isinstance(dataset, h5py.Dataset):
            raise LayoutError(
                f"Dataset '{dataset_name}' not found under {group_path} in {path}.",
                source=str(path),
                locator=group_path,
                selector=dataset_name,
            )
        if block.ndim != dataset.ndim or block.shape[:-1] != dataset.shape[:-1]:
            raise InvalidRequestError(
                f"Block shape {block.shape} does not fit {dataset.name} "
                f"with shape {dataset.shape}.",
                source=str(path),
                locator=group_path,
                selector=dataset_name,
            )
        end = start + block.shape[-1]
        if start < 0 or end > dataset.shape[-1]:
            raise RangeError(
                f"Block [{start}, {end}) is outside {dataset.name} "
                f"with {dataset.shape[-1]} positions.",
                source=str(path),
                locator=group_path,
                selector=(start, end),
            )
        dataset[..., start:end] = block


def _sample_count(samples: Mapping[str, Sequence[object]], group_path: str) -> int:
    lengths = {len(values) for values in samples.values()}
    if len(lengths) != 1 or 0 in lengths:
        raise InvalidRequestError(
            f"Sample descriptors for {group_path} must be non-empty and of equal length, "
            f"got lengths {sorted(lengths)}.",
            locator=group_path,
        )
    return lengths.pop()


def _attribute_values(values: Sequence[object]) -> np.ndarray:
    if all(isinstance(value, str) for value in values):
        return np.array(list(values), dtype=h5py.string_dtype())
    return np.asarray(values)
