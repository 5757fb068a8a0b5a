"""Core constants used across Genoslice modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in backend logic.
"""

from __future__ import annotations

SOURCE_KIND_RELATIONAL = "relational"
SOURCE_KIND_INTERVAL = "interval"
SOURCE_KIND_HIERARCHICAL = "hierarchical"
SUPPORTED_SOURCE_KINDS = (
    SOURCE_KIND_RELATIONAL,
    SOURCE_KIND_INTERVAL,
    SOURCE_KIND_HIERARCHICAL,
)
DEFAULT_STREAM_BATCH_SIZE = 10000
DEFAULT_MAX_OPEN_HANDLES = 8
DEFAULT_MAX_WORKERS = 4
SQLITE_INTERNAL_PREFIX = "sqlite_"
TABIX_INDEX_SUFFIXES = (".tbi", ".csi")
TABIX_META_CHAR = "#"
FIELD_COLUMN_PREFIX = "field_"
TALLY_BASES = ("A", "C", "G", "T")
TALLY_STRANDS = 2
TALLY_COUNTS_DATASET = "Counts"
TALLY_COVERAGES_DATASET = "Coverages"
TALLY_DELETIONS_DATASET = "Deletions"
TALLY_REFERENCE_DATASET = "Reference"
DEFAULT_TALLY_CHUNK_POSITIONS = 10000
