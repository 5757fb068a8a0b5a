"""Interval file preparation.

This module sorts a plain tab-separated interval file by chromosome and
start, bgzip-compresses it, and builds its tabix index through pysam.
Run it once before opening the file with the interval backend.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Iterable

import pysam

from backends.interval_backend import parse_record
from core.constants import TABIX_META_CHAR
from core.errors import InvalidRequestError
from core.logging_config import get_logger
from core.types import BED_LAYOUT, IntervalLayout

_LOGGER = get_logger(__name__)


def sort_interval_lines(
    lines: Iterable[str],
    layout: IntervalLayout,
    path: Path = Path("<memory>"),
) -> list[str]:
    """Sort data lines by chromosome then start, keeping headers first.

    Args:
        lines: Raw lines without trailing newlines.
        layout: Coordinate column layout.
        path: File path used in error messages.

    Returns:
        Header lines in original order followed by sorted data lines.

    Raises:
        SourceConnectionError: If a data line has invalid coordinates.
    """
    headers: list[str] = []
    keyed: list[tuple[str, int, int, str]] = []
    for line in lines:
        if not line.strip():
            continue
        if line.startswith(TABIX_META_CHAR):
            headers.append(line)
            continue
        record = parse_record(line, layout, path)
        keyed.append((record.chromosome, record.start, record.end, line))
    keyed.sort(key=lambda item: (item[0], item[1], item[2]))
    return headers + [item[3] for item in keyed]


def prepare_interval_file(
    path: str | Path,
    layout: IntervalLayout = BED_LAYOUT,
    output_path: str | Path | None = None,
    force: bool = False,
) -> Path:
    """Sort, compress, and index a plain interval file.

    Args:
        path: Plain tab-separated input file.
        layout: Coordinate column layout.
        output_path: Compressed output path; ``<path>.gz`` by default.
        force: Overwrite an existing output and index.

    Returns:
        Path of the compressed, indexed file.

    Raises:
        InvalidRequestError: If the input is missing or the output exists.
    """
    input_path = Path(path).expanduser()
    if not input_path.is_file():
        raise InvalidRequestError(
            f"Failed to prepare {input_path}: file does not exist.",
            source=str(input_path),
        )
    target = (
        Path(output_path).expanduser()
        if output_path is not None
        else input_path.with_name(input_path.name + ".gz")
    )
    if target.exists() and not force:
        raise InvalidRequestError(
            f"Output {target} already exists. Pass force=True to overwrite it.",
            source=str(input_path),
        )
    lines = input_path.read_text(encoding="utf-8").splitlines()
    sorted_lines = sort_interval_lines(lines, layout, input_path)
    with tempfile.TemporaryDirectory(dir=target.parent) as work_dir:
        sorted_path = Path(work_dir) / input_path.name
        sorted_path.write_text("\n".join(sorted_lines) + "\n", encoding="utf-8")
        pysam.tabix_compress(str(sorted_path), str(target), force=True)
    pysam.tabix_index(
        str(target),
        force=True,
        seq_col=layout.sequence_column,
        start_col=layout.start_column,
        end_col=layout.end_column,
        meta_char=TABIX_META_CHAR,
        zerobased=layout.zero_based,
    )
    _LOGGER.info(
        "interval_file_prepared",
        input_path=str(input_path),
        output_path=str(target),
        line_count=len(sorted_lines),
    )
    return target
