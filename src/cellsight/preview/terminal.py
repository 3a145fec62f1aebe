"""Terminal preview for conversations using Rich."""

from typing import Optional

from rich.console import Console, Group, RenderableType
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cellsight.models import Cell, CodeCell, ConversationPage, ConversationState


class ConversationPreview:
    """Render conversation pages and cell listings in the terminal."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize terminal preview.

        Args:
            console: Rich console to use (creates new if None)
        """
        self.console = console or Console()

    def render_state(self, state: ConversationState) -> RenderableType:
        """Build the panel for the page the user is looking at.

        Args:
            state: Conversation state to render

        Returns:
            RenderableType: Panel with the page, or a loading placeholder
        """
        total = len(state.pages)
        index = state.current_page_index

        if index < total:
            body = self._page_body(state.pages[index])
        else:
            body = Text("Thinking...", style="dim italic")

        subtitle = f"{min(index + 1, max(total, 1))}/{max(total, 1)}"
        if state.is_loading:
            subtitle += " • loading"
        if state.error:
            body = Group(body, Text(f"Error: {state.error}", style="red"))

        return Panel(
            body,
            title="[bold cyan]Assistant[/bold cyan]",
            subtitle=subtitle,
            border_style="yellow" if state.is_loading else "cyan",
            padding=(1, 2),
        )

    def show(self, state: ConversationState) -> None:
        """Print the current page."""
        self.console.print(self.render_state(state))

    def _page_body(self, page: ConversationPage) -> RenderableType:
        parts: list[RenderableType] = []

        if page.explanation:
            parts.append(Markdown(page.explanation))
        if page.details:
            parts.append(Text(""))
            parts.append(Panel(Markdown(page.details), title="Details", border_style="dim"))
        if page.follow_ups:
            parts.append(Text(""))
            parts.append(Text("Follow-ups:", style="bold"))
            for number, follow_up in enumerate(page.follow_ups, start=1):
                parts.append(Text(f"  {number}. {follow_up}", style="magenta"))

        if not parts:
            return Text("(empty page)", style="dim")
        return Group(*parts)

    def show_cells(self, cells: list[tuple[int | None, Cell]]) -> None:
        """Print a table of extracted cells.

        Args:
            cells: (cell id, cell) pairs in document order; the id is None
                for text cells
        """
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Id", justify="right")
        table.add_column("Type")
        table.add_column("Run", justify="right")
        table.add_column("Outputs", justify="right")
        table.add_column("First line", overflow="ellipsis", no_wrap=True)

        for cell_id, cell in cells:
            first_line = escape(cell.source[0]) if cell.source else ""
            if isinstance(cell, CodeCell):
                run = f"[{cell.execution_count}]" if cell.execution_count is not None else "-"
                table.add_row(str(cell_id), "code", run, str(len(cell.outputs)), first_line)
            else:
                table.add_row("", "markdown", "", "", first_line)

        self.console.print(table)
