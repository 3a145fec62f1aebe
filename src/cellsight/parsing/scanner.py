"""Locating and classifying cell elements in the host document."""

import asyncio
import logging
from typing import Optional, Union

from bs4 import Tag

from cellsight import ExtractionError
from cellsight.host.document import HostDocument, Mutation, Subscription, has_class
from cellsight.models import CodeCell, MarkdownCell
from cellsight.parsing.extractor import CellExtractor

logger = logging.getLogger(__name__)

CELL_SELECTOR = "div.cell"
RUN_BUTTON_SELECTOR = "colab-run-button"
STATUS_SELECTOR = ".status"


class CodeCellHandle:
    """A code cell element whose run status can be read.

    Attributes:
        node: The cell element
        status: Status element inside the cell's run button
    """

    cell_type = "code"

    def __init__(self, node: Tag, status: Tag, extractor: CellExtractor):
        self.node = node
        self.status = status
        self._extractor = extractor

    def get_cell(self) -> Optional[CodeCell]:
        """Snapshot the cell, or None if its last run has not completed."""
        return self._extractor.code_cell(self.node, self.status)


class MarkdownCellHandle:
    """A text cell element.

    Attributes:
        node: The cell element
    """

    cell_type = "markdown"

    def __init__(self, node: Tag, extractor: CellExtractor):
        self.node = node
        self._extractor = extractor

    def get_cell(self) -> MarkdownCell:
        """Snapshot the cell."""
        return self._extractor.markdown_cell(self.node)


CellHandle = Union[CodeCellHandle, MarkdownCellHandle]


def find_status(node: Tag) -> Optional[Tag]:
    """Return node itself if it is a status element, else its first status descendant."""
    if has_class(node, "status"):
        return node
    return node.select_one(STATUS_SELECTOR)


class TreeScanner:
    """Finds cell elements under a root and classifies them.

    The host renders a code cell's run button before the status element
    inside it, so classifying a code cell may have to wait for a later
    mutation of the document.
    """

    def __init__(self, document: HostDocument, extractor: Optional[CellExtractor] = None):
        """Initialize the scanner.

        Args:
            document: Document whose change feed is watched
            extractor: Extractor handed to the produced handles
        """
        self.document = document
        self.extractor = extractor or CellExtractor()

    def candidates(self, root: Tag) -> list[Tag]:
        """Cell elements at or under root, in document order."""
        elements = root.select(CELL_SELECTOR)
        if root.name == "div" and has_class(root, "cell"):
            elements.insert(0, root)
        return elements

    def scan(self, root: Tag) -> list["asyncio.Future[CellHandle]"]:
        """Classify every cell element at or under root.

        Must be called from a running event loop.

        Args:
            root: Element to search

        Returns:
            list[asyncio.Future]: One future per cell element, resolving to
                its handle. Futures of code cells still missing their status
                element stay pending until it is inserted.
        """
        return [self.classify(node) for node in self.candidates(root)]

    def classify(self, node: Tag) -> "asyncio.Future[CellHandle]":
        """Classify a single cell element.

        Args:
            node: Element matching the cell selector

        Returns:
            asyncio.Future: Resolves to the cell handle, or fails with
                ExtractionError when the element is not a supported cell
        """
        future: asyncio.Future[CellHandle] = asyncio.get_running_loop().create_future()

        if has_class(node, "text"):
            if node.select_one("div.markdown") is None:
                future.set_exception(ExtractionError("Invalid element: `div.markdown` expected."))
            else:
                future.set_result(MarkdownCellHandle(node, self.extractor))

        elif has_class(node, "code"):
            run_button = node.select_one(RUN_BUTTON_SELECTOR)
            if run_button is None:
                future.set_exception(
                    ExtractionError(f"Invalid element: `{RUN_BUTTON_SELECTOR}` expected.")
                )
            else:
                status = find_status(run_button)
                if status is not None:
                    future.set_result(CodeCellHandle(node, status, self.extractor))
                else:
                    self._wait_for_status(node, run_button, future)

        else:
            future.set_exception(
                ExtractionError("Invalid element: `cell code` or `cell text` expected.")
            )

        return future

    def _wait_for_status(
        self, node: Tag, run_button: Tag, future: "asyncio.Future[CellHandle]"
    ) -> None:
        """Resolve future once a status element is inserted under run_button."""
        logger.debug("Status element not rendered yet; waiting for the run button to fill in")

        def on_mutation(mutation: Mutation, subscription: Subscription) -> None:
            for added in mutation.added_nodes:
                if not isinstance(added, Tag):
                    continue
                status = find_status(added)
                if status is not None:
                    subscription.cancel()
                    if not future.done():
                        future.set_result(CodeCellHandle(node, status, self.extractor))
                    return

        subscription = self.document.subscribe(run_button, on_mutation, kinds=("child_list",))
        future.add_done_callback(lambda _: subscription.cancel())
