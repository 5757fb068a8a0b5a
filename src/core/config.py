"""Runtime configuration model for Genoslice.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from core.constants import (
    DEFAULT_MAX_OPEN_HANDLES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_STREAM_BATCH_SIZE,
)
from core.errors import GenosliceConfigError


@dataclass(frozen=True)
class GenosliceConfig:
    """Validated runtime configuration.

    Attributes:
        stream_batch_size: Rows per batch for lazy interval and query reads.
        max_open_handles: Upper bound on handles cached by an accessor.
        max_workers: Worker count for partitioned interval fetches.
    """

    stream_batch_size: int = DEFAULT_STREAM_BATCH_SIZE
    max_open_handles: int = DEFAULT_MAX_OPEN_HANDLES
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_env(cls) -> "GenosliceConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            GenosliceConfigError: If environment values are invalid.
        """
        return cls(
            stream_batch_size=_parse_positive_int(
                "GENOSLICE_STREAM_BATCH_SIZE",
                os.getenv("GENOSLICE_STREAM_BATCH_SIZE", str(DEFAULT_STREAM_BATCH_SIZE)),
            ),
            max_open_handles=_parse_positive_int(
                "GENOSLICE_MAX_OPEN_HANDLES",
                os.getenv("GENOSLICE_MAX_OPEN_HANDLES", str(DEFAULT_MAX_OPEN_HANDLES)),
            ),
            max_workers=_parse_positive_int(
                "GENOSLICE_MAX_WORKERS",
                os.getenv("GENOSLICE_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)),
            ),
        )


def _parse_positive_int(variable_name: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        variable_name: Environment variable name for error context.
        raw_value: Raw string from environment.

    Returns:
        Parsed positive integer.

    Raises:
        GenosliceConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise GenosliceConfigError(
            f"Invalid {variable_name} value: "
            f"expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a positive number."
        ) from error
    if value < 1:
        raise GenosliceConfigError(
            f"Invalid {variable_name} value: expected a positive integer, got {value}."
        )
    return value
