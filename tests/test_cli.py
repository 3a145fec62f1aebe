"""Tests for the command-line interface."""

import threading
from types import SimpleNamespace

import click
import nbformat
import pytest
from click.testing import CliRunner
from rich.console import Console

from cellsight.cli import _converse, main
from cellsight.models import ConversationState
from cellsight.preview.terminal import ConversationPreview


class TestCli:
    """Test CLI commands."""

    def test_cells_lists_page(self, tmp_path, code_cell_markup, markdown_cell_markup, page_markup):
        """Test that cells prints every cell of a snapshot."""
        snapshot = tmp_path / "page.html"
        snapshot.write_text(
            page_markup(
                markdown_cell_markup("Intro", "Text"),
                code_cell_markup(["x = 1"], "[1]"),
                code_cell_markup(["y = 2"], "[ ]"),
            ),
            encoding="utf-8",
        )

        result = CliRunner().invoke(main, ["cells", str(snapshot)])

        assert result.exit_code == 0, result.output
        assert "markdown" in result.output
        assert "x = 1" in result.output
        assert "y = 2" in result.output

    def test_cells_exports_notebook(self, tmp_path, code_cell_markup, page_markup):
        """Test that --ipynb writes the cells as a notebook."""
        snapshot = tmp_path / "page.html"
        snapshot.write_text(
            page_markup(code_cell_markup(["x = 1"], "[1]", outputs=[("stream", "1")])),
            encoding="utf-8",
        )
        target = tmp_path / "cells.ipynb"

        result = CliRunner().invoke(main, ["cells", str(snapshot), "--ipynb", str(target)])

        assert result.exit_code == 0, result.output
        nb = nbformat.read(target, as_version=4)
        assert nb.cells[0].source == "x = 1"
        assert nb.cells[0].outputs[0].text == "1"

    def test_cells_reports_extraction_errors(self, tmp_path, code_cell_markup, page_markup):
        """Test that unreadable markup fails with a message."""
        snapshot = tmp_path / "page.html"
        snapshot.write_text(page_markup(code_cell_markup(["x"], "[bad]")), encoding="utf-8")

        result = CliRunner().invoke(main, ["cells", str(snapshot)])

        assert result.exit_code == 1
        assert "Extraction Failed" in result.output

    def test_config_show(self, monkeypatch):
        """Test that config-show prints the effective configuration."""
        monkeypatch.setenv("CELLSIGHT_API_BASE_URL", "https://assistant.example.com")

        result = CliRunner().invoke(main, ["config-show"])

        assert result.exit_code == 0, result.output
        assert "https://assistant.example.com" in result.output
        assert "/analysis" in result.output

    def test_explain_unknown_cell(self, tmp_path, code_cell_markup, page_markup):
        """Test that explain rejects a cell id not on the page."""
        snapshot = tmp_path / "page.html"
        snapshot.write_text(page_markup(code_cell_markup(["x"], "[1]")), encoding="utf-8")

        result = CliRunner().invoke(main, ["explain", str(snapshot), "--cell", "99", "--no-follow-ups"])

        assert result.exit_code == 2
        assert "No code cell 99" in result.output

    def test_cells_skips_unclassifiable_elements(self, tmp_path, code_cell_markup, page_markup):
        """Test that one unreadable cell element does not hide the others."""
        snapshot = tmp_path / "page.html"
        snapshot.write_text(
            page_markup('<div class="cell widget"></div>', code_cell_markup(["x = 1"], "[1]")),
            encoding="utf-8",
        )

        result = CliRunner().invoke(main, ["cells", str(snapshot)])

        assert result.exit_code == 0, result.output
        assert "x = 1" in result.output


class TestConverse:
    """Test the follow-up prompt loop."""

    @pytest.mark.asyncio
    async def test_prompt_runs_off_the_event_loop(self, monkeypatch):
        """Test that waiting for input does not block the event loop thread."""
        prompt_threads = []

        def fake_prompt(*args, **kwargs):
            prompt_threads.append(threading.current_thread())
            return "q"

        monkeypatch.setattr(click, "prompt", fake_prompt)
        conversation = SimpleNamespace(state=ConversationState())

        await _converse(conversation, ConversationPreview(Console(record=True)))

        assert len(prompt_threads) == 1
        assert prompt_threads[0] is not threading.main_thread()
