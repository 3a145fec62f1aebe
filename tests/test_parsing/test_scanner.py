"""Tests for locating and classifying cell elements."""

import asyncio

import pytest

from cellsight import ExtractionError
from cellsight.host.document import HostDocument
from cellsight.parsing.scanner import CodeCellHandle, MarkdownCellHandle, TreeScanner


class TestTreeScanner:
    """Test TreeScanner classification."""

    @pytest.mark.asyncio
    async def test_scan_classifies_in_document_order(
        self, code_cell_markup, markdown_cell_markup, page_markup
    ):
        """Test that rendered cells resolve immediately to typed handles."""
        document = HostDocument.from_html(
            page_markup(
                markdown_cell_markup("Intro", "Text"),
                code_cell_markup(["x = 1"], "[1]"),
            )
        )
        futures = TreeScanner(document).scan(document.root)

        assert len(futures) == 2
        assert all(future.done() for future in futures)

        markdown, code = [future.result() for future in futures]
        assert isinstance(markdown, MarkdownCellHandle)
        assert markdown.get_cell().source == ["Intro", "Text"]
        assert isinstance(code, CodeCellHandle)
        assert code.get_cell().source == ["x = 1"]

    @pytest.mark.asyncio
    async def test_root_included_when_it_is_a_cell(self, code_cell_markup):
        """Test that scanning a cell element classifies the element itself."""
        document = HostDocument.from_html(code_cell_markup(["x"]))
        cell = document.soup.find("div")

        futures = TreeScanner(document).scan(cell)

        assert len(futures) == 1
        assert futures[0].result().node is cell

    @pytest.mark.asyncio
    async def test_status_inserted_later(self, code_cell_markup, status_markup):
        """Test that a code cell waits for its status element."""
        document = HostDocument.from_html(code_cell_markup(["y = 2"], status=False))
        future = TreeScanner(document).scan(document.root)[0]
        assert not future.done()

        run_button = document.soup.find("colab-run-button")
        document.append(run_button, status_markup("[7]", True))

        assert future.done()
        handle = future.result()
        assert handle.status.name == "div"
        assert handle.get_cell().execution_count == 7

    @pytest.mark.asyncio
    async def test_unrelated_insertions_keep_waiting(self, code_cell_markup, status_markup):
        """Test that only an inserted status element resolves the cell."""
        document = HostDocument.from_html(code_cell_markup(["y"], status=False))
        future = TreeScanner(document).scan(document.root)[0]

        run_button = document.soup.find("colab-run-button")
        document.append(run_button, "<span>icon</span>")
        assert not future.done()

        document.append(run_button, f"<div>{status_markup('[1]', True)}</div>")
        assert future.done()

    @pytest.mark.asyncio
    async def test_cancel_releases_watch(self, code_cell_markup):
        """Test that cancelling a pending classification drops its subscription."""
        document = HostDocument.from_html(code_cell_markup(["y"], status=False))
        future = TreeScanner(document).scan(document.root)[0]
        assert len(document._subscriptions) == 1

        future.cancel()
        await asyncio.sleep(0)

        assert document._subscriptions == []

    @pytest.mark.asyncio
    async def test_text_cell_without_markdown(self):
        """Test that a text cell without a markdown body is rejected."""
        document = HostDocument.from_html('<div class="cell text"><p>x</p></div>')
        future = TreeScanner(document).scan(document.root)[0]

        with pytest.raises(ExtractionError, match="div.markdown"):
            future.result()

    @pytest.mark.asyncio
    async def test_code_cell_without_run_button(self):
        """Test that a code cell without a run button is rejected."""
        document = HostDocument.from_html('<div class="cell code"><pre>x</pre></div>')
        future = TreeScanner(document).scan(document.root)[0]

        with pytest.raises(ExtractionError, match="colab-run-button"):
            future.result()

    @pytest.mark.asyncio
    async def test_unknown_cell_kind(self):
        """Test that a cell that is neither code nor text is rejected."""
        document = HostDocument.from_html('<div class="cell widget"></div>')
        future = TreeScanner(document).scan(document.root)[0]

        with pytest.raises(ExtractionError, match="cell code"):
            future.result()

    @pytest.mark.asyncio
    async def test_no_cells(self):
        """Test that a tree without cells yields no futures."""
        document = HostDocument.from_html("<div><p>nothing</p></div>")
        assert TreeScanner(document).scan(document.root) == []
