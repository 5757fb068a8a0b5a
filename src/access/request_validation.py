"""Locator and selector shape checks.

This module maps each source kind onto the locator and selector types
its backend accepts, so mismatched requests fail before any source is
opened.
"""

from __future__ import annotations

from core.constants import (
    SOURCE_KIND_HIERARCHICAL,
    SOURCE_KIND_INTERVAL,
    SOURCE_KIND_RELATIONAL,
)
from core.errors import InvalidRequestError
from core.types import (
    BlockSelector,
    GenomicInterval,
    GroupLocator,
    Locator,
    Selector,
    Source,
    SqlQuery,
    TableLocator,
    TableSelect,
)

_NO_LOCATOR = type(None)

# selector type -> accepted locator type, per source kind
ACCEPTED_REQUESTS: dict[str, dict[type, type]] = {
    SOURCE_KIND_RELATIONAL: {SqlQuery: _NO_LOCATOR, TableSelect: TableLocator},
    SOURCE_KIND_INTERVAL: {GenomicInterval: _NO_LOCATOR},
    SOURCE_KIND_HIERARCHICAL: {BlockSelector: GroupLocator},
}


def validate_request(source: Source, locator: Locator, selector: Selector) -> None:
    """Check that locator and selector fit the source kind.

    Args:
        source: Requested source.
        locator: Requested locator.
        selector: Requested selector.

    Raises:
        InvalidRequestError: If the kind is unknown or shapes do not match.
    """
    require_kind(source, source.kind, locator, selector)
    accepted = ACCEPTED_REQUESTS[source.kind]
    expected_locator = accepted.get(type(selector))
    if expected_locator is None:
        raise InvalidRequestError(
            f"Selector {type(selector).__name__} is not valid for {source.kind} source "
            f"{source.path}. Expected one of: {_type_names(accepted)}.",
            source=str(source.path),
            locator=locator,
            selector=selector,
        )
    if not isinstance(locator, expected_locator):
        expected_name = "no locator" if expected_locator is _NO_LOCATOR else expected_locator.__name__
        raise InvalidRequestError(
            f"Locator {type(locator).__name__} does not fit {type(selector).__name__} "
            f"on {source.kind} source {source.path}. Expected {expected_name}.",
            source=str(source.path),
            locator=locator,
            selector=selector,
        )


def require_kind(
    source: Source,
    kind: str,
    locator: Locator = None,
    selector: Selector | None = None,
) -> None:
    """Check that a source is known and tagged with ``kind``.

    Raises:
        InvalidRequestError: If the source kind is unknown or different.
    """
    if source.kind not in ACCEPTED_REQUESTS:
        raise InvalidRequestError(
            f"Unknown source kind '{source.kind}' for {source.path}. "
            f"Expected one of: {sorted(ACCEPTED_REQUESTS)}.",
            source=str(source.path),
            locator=locator,
            selector=selector,
        )
    if source.kind != kind:
        raise InvalidRequestError(
            f"Source {source.path} is {source.kind}, but this operation needs {kind}.",
            source=str(source.path),
            locator=locator,
            selector=selector,
        )


def _type_names(accepted: dict[type, type]) -> list[str]:
    return sorted(selector_type.__name__ for selector_type in accepted)
