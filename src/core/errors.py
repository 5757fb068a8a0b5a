"""Genoslice exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each backend raises a specific error type carrying the request context.
"""

from __future__ import annotations


class GenosliceError(Exception):
    """Base exception for all Genoslice failures.

    Attributes:
        source: Source path involved in the failure, when known.
        locator: Requested locator, when known.
        selector: Requested selector, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        source: object | None = None,
        locator: object | None = None,
        selector: object | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.locator = locator
        self.selector = selector


class GenosliceConfigError(GenosliceError):
    """Raised for invalid runtime configuration."""


class SourceConnectionError(GenosliceError):
    """Raised when a source is missing, unreadable, or corrupt."""


class QueryError(GenosliceError):
    """Raised for malformed or unsatisfiable relational queries."""


class IndexMissingError(GenosliceError):
    """Raised when an interval source lacks a valid, up-to-date index."""


class LayoutError(GenosliceError):
    """Raised when a group or dataset path is absent from a store."""


class RangeError(GenosliceError):
    """Raised when a block range falls outside a dataset's extent."""


class InvalidRequestError(GenosliceError):
    """Raised when locator or selector shape does not fit the source kind."""
