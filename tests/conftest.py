"""Pytest configuration and fixtures."""

import html
import json

import httpx
import pytest

from cellsight.config import reset_config
from cellsight.tracking.ledger import reset_ledger
from cellsight.tracking.registry import reset_registry


@pytest.fixture(autouse=True)
def reset_globals_after_test():
    """Reset global config, registry and ledger after each test."""
    yield
    reset_config()
    reset_registry()
    reset_ledger()


def _status_markup(count: str, last_run: bool) -> str:
    last = '<span class="last-run">just now</span>' if last_run else ""
    return f'<div class="status"><span class="execution-count">{count}</span>{last}</div>'


@pytest.fixture
def code_cell_markup():
    """Build the host markup of a code cell.

    Source lines render as editor lines, or as a colorized block when
    collapsed. Outputs are (type tag, text) pairs.
    """

    def build(
        source,
        count="[1]",
        *,
        collapsed=False,
        outputs=None,
        last_run=True,
        status=True,
        reverse_lines=False,
    ):
        status_html = _status_markup(count, last_run) if status else ""

        if collapsed:
            lines = "<br>".join(
                f'<span><span class="mtk1">{html.escape(line)}</span></span>' for line in source
            )
            editor = f'<pre class="monaco-colorized">{lines}</pre>'
        else:
            view_lines = [
                f'<div class="view-line" style="top:{19 * i}px">'
                f'<span><span class="mtk1">{html.escape(line).replace(" ", "&nbsp;")}</span></span>'
                f"</div>"
                for i, line in enumerate(source)
            ]
            if reverse_lines:
                view_lines.reverse()
            editor = f'<div class="view-lines">{"".join(view_lines)}</div>'

        output_html = ""
        classes = "cell code"
        if outputs is not None:
            classes += " code-has-output"
            output_html = (
                '<div class="output"><div class="output-body">'
                + "".join(
                    f'<div class="{tag} output-item"><pre>{html.escape(text)}</pre></div>'
                    for tag, text in outputs
                )
                + "</div></div>"
            )

        style = ' style="display: none"' if collapsed else ""
        return (
            f'<div class="{classes}"{style}><div class="main-content">'
            f"<colab-run-button>{status_html}</colab-run-button>"
            f"{editor}{output_html}"
            f"</div></div>"
        )

    return build


@pytest.fixture
def markdown_cell_markup():
    """Build the host markup of a text cell."""

    def build(title, body):
        return (
            '<div class="cell text"><div class="main-content"><div class="markdown">'
            f'<h1><span class="material-icons">keyboard_arrow_down</span>{html.escape(title)}</h1>'
            f"<p>{html.escape(body)}</p>"
            "</div></div></div>"
        )

    return build


@pytest.fixture
def status_markup():
    """Build the markup the host inserts into a run button."""
    return _status_markup


@pytest.fixture
def page_markup():
    """Wrap cell markup in a notebook page."""

    def build(*cells):
        return f'<html><body><div id="notebook">{"".join(cells)}</div></body></html>'

    return build


@pytest.fixture
def ndjson():
    """Encode frames as newline-delimited JSON bytes."""

    def encode(*frames, trailing_newline=True):
        text = "\n".join(json.dumps(frame) for frame in frames)
        if trailing_newline:
            text += "\n"
        return text.encode("utf-8")

    return encode


@pytest.fixture
def chunked():
    """Turn byte chunks into an async response body."""

    def build(*chunks):
        async def body():
            for chunk in chunks:
                yield chunk

        return body()

    return build


@pytest.fixture
def login_response():
    """Response of a successful login."""
    return lambda: httpx.Response(200, json={"session_id": "session-1"})
