"""Cell extraction from host notebook markup."""

import logging
import re
from typing import Optional

from bs4 import Comment, NavigableString, Tag

from cellsight import ExtractionError
from cellsight.host.document import has_class
from cellsight.models import (
    CodeCell,
    DisplayOutput,
    MarkdownCell,
    Output,
    ResultOutput,
    StderrOutput,
    StdoutOutput,
)

logger = logging.getLogger(__name__)

# Elements that start a new line in rendered text
BLOCK_TAGS = {
    "address", "article", "blockquote", "br", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "li", "ol", "p", "pre", "section", "table", "tr", "ul",
}

# Counter tokens shown while a cell has not finished a run
PENDING_TOKENS = {"", "[ ]", "[*]"}

EXECUTION_COUNT_PATTERN = re.compile(r"^\[\s*(\d+)\s*\]$")
TOP_PATTERN = re.compile(r"top\s*:\s*(-?\d+(?:\.\d+)?)px")
HIDDEN_PATTERN = re.compile(r"display\s*:\s*none")


def inner_text(node: Tag) -> str:
    """Approximate the rendered text of an element.

    Block-level elements start a new line, non-breaking spaces become plain
    spaces and comments are dropped.
    """
    parts: list[str] = []
    for element in node.descendants:
        if isinstance(element, Comment):
            continue
        if isinstance(element, NavigableString):
            parts.append(str(element))
        elif isinstance(element, Tag) and element.name in BLOCK_TAGS:
            parts.append("\n")
    text = "".join(parts).replace("\xa0", " ")
    return re.sub(r"\n{2,}", "\n", text)


def is_collapsed(node: Tag) -> bool:
    """Check whether the host has hidden the cell's editor."""
    return bool(HIDDEN_PATTERN.search(node.get("style") or ""))


class CellExtractor:
    """Reads typed cell snapshots out of host cell elements.

    Extraction is a pure read of the element's current state; call it again
    after the element changes to get a fresh snapshot.
    """

    # Host output tags and the output variants they become
    OUTPUT_TYPES = {
        "execute_result": ResultOutput,
        "stream": StdoutOutput,
        "error": StderrOutput,
        "display_data": DisplayOutput,
    }

    def markdown_cell(self, node: Tag) -> MarkdownCell:
        """Extract a text cell.

        Args:
            node: Cell element marked "text"

        Returns:
            MarkdownCell: Rendered text lines

        Raises:
            ExtractionError: If the cell has no markdown body
        """
        markdown = node.select_one("div.markdown")
        if markdown is None:
            raise ExtractionError("Invalid element: `div.markdown` expected.")

        text = inner_text(markdown).replace("keyboard_arrow_down", "").strip()
        return MarkdownCell(source=text.split("\n"))

    def code_cell(self, node: Tag, status: Tag) -> Optional[CodeCell]:
        """Extract a code cell if its last run has completed.

        Args:
            node: Cell element marked "code"
            status: Status element of the cell's run button

        Returns:
            Optional[CodeCell]: Snapshot, or None while the cell has not
                completed a run

        Raises:
            ExtractionError: If the markup is not a supported cell layout
        """
        execution_count = self.execution_count(status)
        if execution_count is None:
            return None

        outputs = self.outputs_of(node) if has_class(node, "code-has-output") else []

        return CodeCell(
            execution_count=execution_count,
            outputs=outputs,
            source=self.source_of(node),
        )

    def execution_count(self, status: Tag) -> Optional[int]:
        """Read the completed execution counter from a status element.

        Args:
            status: Status element of a run button

        Returns:
            Optional[int]: Counter, or None if no run has completed
        """
        counter = status.select_one(".execution-count")
        if counter is None:
            raise ExtractionError("Invalid element: `.execution-count` expected.")

        token = inner_text(counter).strip()
        if status.select_one(".last-run") is None or token in PENDING_TOKENS:
            return None

        match = EXECUTION_COUNT_PATTERN.match(token)
        if match is None:
            raise ExtractionError(f"Unexpected execution count: {token!r}")
        return int(match.group(1))

    def source_of(self, node: Tag) -> list[str]:
        """Read source lines from whichever representation is rendered."""
        if is_collapsed(node):
            return self._source_of_collapsed(node)
        return self._source_of_expanded(node)

    def _source_of_collapsed(self, node: Tag) -> list[str]:
        """Source lines from the pre-rendered colorized block."""
        colorized = node.select_one("pre.monaco-colorized")
        if colorized is None:
            raise ExtractionError("Invalid element: `pre.monaco-colorized` expected.")

        return [
            inner_text(line).strip("\n")
            for line in colorized.find_all("span", recursive=False)
        ]

    def _source_of_expanded(self, node: Tag) -> list[str]:
        """Source lines from the live editor.

        The editor positions its lines absolutely, so DOM order is not
        display order; sort by the inline top offset when every line has one.
        """
        lines = node.select(".view-line")
        tops = [TOP_PATTERN.search(line.get("style") or "") for line in lines]
        if lines and all(tops):
            order = sorted(range(len(lines)), key=lambda i: float(tops[i].group(1)))
            lines = [lines[i] for i in order]

        return [inner_text(line).strip("\n") for line in lines]

    def outputs_of(self, node: Tag) -> list[Output]:
        """Read the outputs rendered under a code cell.

        Args:
            node: Cell element marked "code-has-output"

        Returns:
            list[Output]: Outputs in display order; empty when the output
                area is not part of this document

        Raises:
            ExtractionError: If an output has an unsupported type tag
        """
        body = node.select_one("div.output-body")
        if body is None:
            logger.debug("Output body not in document; treating outputs as empty")
            return []

        outputs: list[Output] = []
        for child in body.find_all(True, recursive=False):
            classes = child.get("class") or []
            output_tag = classes[0] if classes else ""
            output_cls = self.OUTPUT_TYPES.get(output_tag)
            if output_cls is None:
                raise ExtractionError(f"Unexpected output type: {output_tag!r}")

            if output_cls is DisplayOutput:
                outputs.append(DisplayOutput())
            else:
                outputs.append(output_cls(text=inner_text(child).strip().split("\n")))

        return outputs
