"""Stable identities for code cell elements."""

import itertools
import logging

from bs4 import Tag

from cellsight import ExtractionError

logger = logging.getLogger(__name__)

CELL_ID_ATTRIBUTE = "data-cellsight-cell-id"


class CellIdentityRegistry:
    """Assigns each cell element an integer id that survives rescans.

    The id is written onto the element itself, so a later scan that finds
    the same element reads it back instead of allocating a new one. Ids are
    opaque: allocation order says nothing about execution order.
    """

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def identify(self, node: Tag) -> int:
        """Return the id of node, allocating one on first sight.

        Args:
            node: Cell element

        Returns:
            int: The element's id

        Raises:
            ExtractionError: If the element carries a malformed id
        """
        existing = node.get(CELL_ID_ATTRIBUTE)
        if existing is not None:
            try:
                return int(existing)
            except ValueError as e:
                raise ExtractionError(
                    f"Invalid {CELL_ID_ATTRIBUTE} attribute: {existing!r}"
                ) from e

        cell_id = next(self._counter)
        node[CELL_ID_ATTRIBUTE] = str(cell_id)
        logger.debug("Assigned cell id %d", cell_id)
        return cell_id


# Process-wide registry (lazy-loaded)
_registry: CellIdentityRegistry | None = None


def get_registry() -> CellIdentityRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = CellIdentityRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the process-wide registry (useful for testing)."""
    global _registry
    _registry = None
