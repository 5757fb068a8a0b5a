"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

BED_LINES = (
    "chr22\t25000000\t25000100\tfar",
    "chr1\t150\t400\tb",
    "chr1\t100\t200\ta",
    "chr22\t16050000\t16050100\tnear",
    "chr2\t500\t600\tg",
    "chr22\t19999990\t20000100\tedge",
    "chr1\t1000\t1100\tc",
)
TALLY_GROUP = "/ExampleStudy/22"
TALLY_POSITIONS = 5000
TALLY_SAMPLES = {
    "Sample": ["s1", "s2", "s3", "s4", "s5", "s6"],
    "Patient": ["p1", "p1", "p2", "p2", "p3", "p3"],
    "Type": ["Case", "Control", "Case", "Control", "Case", "Control"],
    "Column": [0, 1, 2, 3, 4, 5],
}


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """SQLite file with genes, variants, and a view."""
    path = tmp_path / "annotation.sqlite"
    connection = sqlite3.connect(path)
    try:
        connection.executescript(
            """
            CREATE TABLE genes (gene_id TEXT, chromosome TEXT, start INTEGER, "end" INTEGER);
            CREATE TABLE variants (variant_id INTEGER, gene_id TEXT, position INTEGER, score REAL);
            CREATE VIEW gene_variant_counts AS
                SELECT gene_id, COUNT(*) AS variant_count FROM variants GROUP BY gene_id;
            """
        )
        connection.executemany(
            "INSERT INTO genes VALUES (?, ?, ?, ?)",
            [
                ("BRCA2", "chr13", 32315474, 32400266),
                ("TP53", "chr17", 7661779, 7687550),
                ("APOL1", "chr22", 36253071, 36267530),
            ],
        )
        connection.executemany(
            "INSERT INTO variants VALUES (?, ?, ?, ?)",
            [(index, "TP53" if index % 2 else "BRCA2", 7661779 + index, index / 10) for index in range(25)],
        )
        connection.commit()
    finally:
        connection.close()
    return path


@pytest.fixture
def bed_lines() -> tuple[str, ...]:
    """Raw BED lines in file order before sorting."""
    return BED_LINES


@pytest.fixture
def bed_text_path(tmp_path: Path) -> Path:
    """Unsorted plain BED file."""
    path = tmp_path / "regions.bed"
    path.write_text("\n".join(BED_LINES) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def bed_gz_path(bed_text_path: Path) -> Path:
    """Sorted, bgzip-compressed, tabix-indexed BED file."""
    from core.types import BED_LAYOUT
    from prepare.interval_index import prepare_interval_file

    return prepare_interval_file(bed_text_path, BED_LAYOUT)


@pytest.fixture
def tally_path(tmp_path: Path) -> Path:
    """HDF5 tally store with one group and a written Counts block."""
    import numpy as np

    from prepare.tally_store import create_tally_group, write_tally_block

    path = tmp_path / "tallies.hfs5"
    create_tally_group(
        path,
        TALLY_GROUP,
        TALLY_SAMPLES,
        positions=TALLY_POSITIONS,
        chunk_positions=1000,
    )
    block = np.arange(4 * 6 * 2 * 100, dtype="int32").reshape(4, 6, 2, 100)
    write_tally_block(path, TALLY_GROUP, "Counts", 1000, block)
    return path
