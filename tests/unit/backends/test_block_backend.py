"""Unit tests for the hierarchical array store backend."""

from __future__ import annotations

from pathlib import Path

import h5py
import numpy as np
import pytest

from backends.block_backend import list_layout, open_store, read_block, read_side_table
from core.errors import InvalidRequestError, LayoutError, RangeError, SourceConnectionError
from prepare.tally_store import create_tally_group

GROUP = "/ExampleStudy/22"


def test_list_layout_reports_shapes_without_payload(tally_path: Path) -> None:
    """Layout should describe groups and dataset dimensions."""
    with open_store(tally_path) as store:
        layout = list_layout(store)

    counts = layout.find(f"{GROUP}/Counts")
    assert counts is not None
    assert counts.kind == "dataset"
    assert counts.shape == (4, 6, 2, 5000)
    assert layout.find(GROUP).kind == "group"


def test_read_block_length_equals_range_width(tally_path: Path) -> None:
    """Position axis length should equal end - start."""
    with open_store(tally_path) as store:
        block = read_block(store, GROUP, ("Counts", "Coverages", "Reference"), 950, 1150)

    assert block.arrays["Counts"].shape == (4, 6, 2, 200)
    assert block.arrays["Coverages"].shape == (6, 2, 200)
    assert block.arrays["Reference"].shape == (200,)


def test_read_block_matches_direct_read(tally_path: Path) -> None:
    """Block contents should equal the same range read directly."""
    with h5py.File(tally_path, "r") as handle:
        expected = handle[f"{GROUP}/Counts"][..., 1000:1100]

    with open_store(tally_path) as store:
        block = read_block(store, GROUP, ("Counts",), 1000, 1100)

    np.testing.assert_array_equal(block.arrays["Counts"], expected)
    assert block.arrays["Counts"][0, 0, 0, 0] == 0
    assert block.arrays["Counts"][0, 0, 0, 1] == 1


@pytest.mark.parametrize(("start", "end"), [(0, 1), (4999, 5000), (0, 5000)])
def test_read_block_accepts_both_extent_ends(tally_path: Path, start: int, end: int) -> None:
    """Ranges touching the first and last index should be valid."""
    with open_store(tally_path) as store:
        block = read_block(store, GROUP, ("Reference",), start, end)

    assert block.arrays["Reference"].shape == (end - start,)


@pytest.mark.parametrize(("start", "end"), [(-1, 10), (4990, 5001), (10, 10), (20, 10)])
def test_read_block_raises_outside_extent(tally_path: Path, start: int, end: int) -> None:
    """Ranges outside the declared extent should fail."""
    with open_store(tally_path) as store:
        with pytest.raises(RangeError):
            read_block(store, GROUP, ("Counts",), start, end)


def test_read_block_along_sample_axis(tally_path: Path) -> None:
    """A different axis can be designated for the range."""
    with open_store(tally_path) as store:
        block = read_block(store, GROUP, ("Coverages",), 2, 4, axis=0)

    assert block.arrays["Coverages"].shape == (2, 2, 5000)


def test_read_block_raises_for_missing_dataset(tally_path: Path) -> None:
    """Unknown dataset names should fail with LayoutError."""
    with open_store(tally_path) as store:
        with pytest.raises(LayoutError):
            read_block(store, GROUP, ("Insertions",), 0, 10)


def test_read_block_raises_for_missing_group(tally_path: Path) -> None:
    """Unknown group paths should fail with LayoutError."""
    with open_store(tally_path) as store:
        with pytest.raises(LayoutError):
            read_block(store, "/ExampleStudy/X", ("Counts",), 0, 10)


def test_read_block_requires_dataset_names(tally_path: Path) -> None:
    """An empty dataset selection should be rejected."""
    with open_store(tally_path) as store:
        with pytest.raises(InvalidRequestError):
            read_block(store, GROUP, (), 0, 10)


@pytest.mark.parametrize("name", ["/B/2/Counts", "../B/2/Counts", "nested/Counts"])
def test_read_block_rejects_dataset_paths(tmp_path: Path, name: str) -> None:
    """Dataset names should only select direct children of the group."""
    path = tmp_path / "two_groups.h5"
    with h5py.File(path, "w") as handle:
        handle.create_group("A/1").create_dataset("Counts", data=np.zeros((2, 20)))
        handle.create_group("A/1/nested").create_dataset("Counts", data=np.ones((2, 20)))
        handle.create_group("B/2").create_dataset("Counts", data=np.ones((2, 20)))

    with open_store(path) as store:
        with pytest.raises(LayoutError):
            read_block(store, "/A/1", (name,), 0, 10)


def test_read_side_table_returns_one_row_per_sample(tally_path: Path) -> None:
    """Sample descriptors should become a decoded table."""
    with open_store(tally_path) as store:
        samples = read_side_table(store, GROUP)

    assert samples.num_rows == 6
    assert samples.column("Sample").to_pylist()[:2] == ["s1", "s2"]
    assert samples.column("Column").to_pylist() == [0, 1, 2, 3, 4, 5]


def test_read_block_attaches_side_table(tally_path: Path) -> None:
    """Blocks should carry the group's sample table."""
    with open_store(tally_path) as store:
        block = read_block(store, GROUP, ("Deletions",), 0, 10)

    assert block.samples is not None
    assert block.samples.column("Type").to_pylist()[0] == "Case"


def test_read_side_table_raises_for_uneven_descriptors(tmp_path: Path) -> None:
    """Descriptors of different lengths should fail."""
    path = tmp_path / "uneven.h5"
    with h5py.File(path, "w") as handle:
        group = handle.create_group("study")
        group.attrs["Sample"] = np.array(["a", "b"], dtype=h5py.string_dtype())
        group.attrs["Column"] = np.array([0, 1, 2])

    with open_store(path) as store:
        with pytest.raises(LayoutError):
            read_side_table(store, "study")


def test_open_store_raises_for_non_hdf5_file(tmp_path: Path) -> None:
    """Opening should fail when the file is not HDF5."""
    path = tmp_path / "notes.h5"
    path.write_text("plain text", encoding="utf-8")

    with pytest.raises(SourceConnectionError):
        open_store(path)


def test_store_is_read_only(tally_path: Path) -> None:
    """Stores should be opened without write access."""
    with open_store(tally_path) as store:
        assert store.handle.mode == "r"

    assert store.closed


def test_read_block_on_chromosome_scale_store(tmp_path: Path) -> None:
    """A 1000-position block from a full chromosome 22 store has length 1000."""
    path = tmp_path / "chr22.hfs5"
    bases = tuple(f"{base}{quality}" for base in "ACGT" for quality in ("low", "mid", "high"))
    create_tally_group(
        path,
        GROUP,
        {"Sample": [f"s{index}" for index in range(6)]},
        positions=90354753,
        bases=bases,
    )

    with open_store(path) as store:
        counts = list_layout(store).find(f"{GROUP}/Counts")
        block = read_block(store, GROUP, ("Counts",), 29000000, 29001000)

    assert counts is not None and counts.shape == (12, 6, 2, 90354753)
    assert block.arrays["Counts"].shape == (12, 6, 2, 1000)
    assert path.stat().st_size < 10_000_000
