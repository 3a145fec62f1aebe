"""Command-line interface for CellSight."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from cellsight import CellSightError, ConfigurationError, __version__
from cellsight.api.client import AssistantClient
from cellsight.config import CellSightConfig, get_config
from cellsight.conversation.controller import Conversation
from cellsight.host.document import HostDocument
from cellsight.models import Cell, CodeCell
from cellsight.output.notebook import NotebookExporter
from cellsight.output.writer import TranscriptWriter
from cellsight.parsing.scanner import CodeCellHandle, TreeScanner
from cellsight.preview.terminal import ConversationPreview
from cellsight.tracking.ledger import ExecutionLedger
from cellsight.tracking.registry import CellIdentityRegistry
from cellsight.tracking.watcher import NotebookWatcher

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Route log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config() -> CellSightConfig:
    try:
        return get_config()
    except ConfigurationError as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        sys.exit(1)


def _fail(title: str, error: Exception) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[red]Error:[/red] {escape(str(error))}\n\nCheck your inputs and try again.",
            border_style="red",
            title=f"[bold red]{title}[/bold red]",
        )
    )
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: from config or WARNING)",
)
@click.option("--verbose", "-v", is_flag=True, help="Shortcut for --log-level DEBUG")
def main(log_level: Optional[str], verbose: bool):
    """CellSight - Ask an AI assistant about notebook cells."""
    if verbose:
        level = "DEBUG"
    elif log_level:
        level = log_level.upper()
    else:
        level = _load_config().log_level
    setup_logging(level)


async def _read_cells(snapshot: Path) -> list[tuple[int | None, Cell]]:
    """Extract every classifiable cell of a saved page, in document order."""
    document = HostDocument.from_html(snapshot.read_text(encoding="utf-8"))
    scanner = TreeScanner(document)
    registry = CellIdentityRegistry()

    cells: list[tuple[int | None, Cell]] = []
    for future in scanner.scan(document.root):
        if not future.done():
            logger.info("Skipping code cell whose run button never rendered")
            future.cancel()
            continue
        error = future.exception()
        if error is not None:
            logger.warning("Skipping cell element: %s", error)
            continue
        handle = future.result()
        if isinstance(handle, CodeCellHandle):
            cell_id = registry.identify(handle.node)
            cell = handle.get_cell() or CodeCell(
                execution_count=None,
                source=scanner.extractor.source_of(handle.node),
            )
            cells.append((cell_id, cell))
        else:
            cells.append((None, handle.get_cell()))
    return cells


@main.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--ipynb",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also export the cells as a Jupyter notebook",
)
def cells(snapshot: Path, ipynb: Optional[Path]):
    """List the cells found in a saved notebook page.

    SNAPSHOT: HTML file saved from the notebook page
    """
    try:
        found = asyncio.run(_read_cells(snapshot))
    except CellSightError as e:
        _fail("Extraction Failed", e)

    ConversationPreview(console).show_cells(found)

    if ipynb:
        path = NotebookExporter().export([cell for _, cell in found], ipynb)
        console.print(f"[green]Exported {len(found)} cell(s) to[/green] {path}")


async def _converse(conversation: Conversation, preview: ConversationPreview) -> None:
    """Prompt for follow-ups until the user quits."""
    while True:
        state = conversation.state
        page = state.pages[state.current_page_index] if state.current_page_index < len(state.pages) else None
        suggestions = (page.follow_ups or []) if page else []

        answer = (
            await asyncio.to_thread(
                click.prompt,
                "Ask a question, pick a follow-up number, [n]ext, [p]rev, [r]etry or [q]uit",
                default="q",
                show_default=False,
            )
        ).strip()

        if answer.lower() == "q":
            return
        if answer.lower() in ("n", "p"):
            move = conversation.goto_next if answer.lower() == "n" else conversation.goto_prev
            if move is None:
                console.print("[yellow]No page in that direction.[/yellow]")
                continue
            move()
            preview.show(conversation.state)
            continue
        if answer.lower() == "r":
            if conversation.state.pages:
                console.print("[yellow]Nothing to retry; ask the question again.[/yellow]")
                continue
            await _stream(conversation, preview, conversation.open)
            continue

        if answer.isdigit() and 1 <= int(answer) <= len(suggestions):
            answer = suggestions[int(answer) - 1]

        ask = conversation.follow_up
        if ask is None:
            console.print("[yellow]Follow-ups are not available yet.[/yellow]")
            continue
        console.print(f"[bold]>[/bold] {escape(answer)}")
        await _stream(conversation, preview, lambda: ask(answer))


async def _stream(conversation: Conversation, preview: ConversationPreview, action) -> None:
    """Run a conversation action while rendering pages as they stream in."""
    with Live(preview.render_state(conversation.state), console=console, refresh_per_second=8) as live:
        unsubscribe = conversation.subscribe(lambda state: live.update(preview.render_state(state)))
        try:
            task = action()
            if task is not None:
                await task
        finally:
            unsubscribe()


async def _explain(
    snapshot: Path,
    cell_id: int,
    config: CellSightConfig,
    transcript: Optional[Path],
    transcript_format: str,
    interactive: bool,
) -> None:
    document = HostDocument.from_html(snapshot.read_text(encoding="utf-8"))
    ledger = ExecutionLedger()
    watcher = NotebookWatcher(
        document,
        registry=CellIdentityRegistry(),
        ledger=ledger,
        record_existing=True,
    )
    watcher.start()
    try:
        handle = watcher.mounted.get(cell_id)
        if handle is None:
            raise click.BadParameter(
                f"No code cell {cell_id}; the page has {len(watcher.mounted)} code cell(s)",
                param_hint="--cell",
            )
        console.print(f"[dim]{len(ledger)} executed cell(s) recorded as context[/dim]")

        async with AssistantClient.from_config(config) as client:
            session_id = await client.login()
            conversation = Conversation(client, session_id, cell_id, handle.get_cell, ledger)
            preview = ConversationPreview(console)

            await _stream(conversation, preview, conversation.open)
            if interactive:
                await _converse(conversation, preview)

            if transcript:
                path = TranscriptWriter().write(
                    conversation.to_transcript(base_url=config.api_base_url),
                    transcript,
                    format=transcript_format,
                )
                console.print(f"[green]Transcript written to[/green] {path}")
    finally:
        watcher.stop()


@main.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--cell", "-c", "cell_id", type=int, required=True, help="Code cell id (see `cellsight cells`)")
@click.option(
    "--transcript",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the conversation to this file",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "text", "markdown"]),
    default=None,
    help="Transcript format (default: from config or markdown)",
)
@click.option("--no-follow-ups", is_flag=True, help="Stop after the first explanation")
def explain(
    snapshot: Path,
    cell_id: int,
    transcript: Optional[Path],
    format: Optional[str],
    no_follow_ups: bool,
):
    """Explain a code cell of a saved notebook page.

    SNAPSHOT: HTML file saved from the notebook page
    """
    config = _load_config()

    console.print(
        Panel.fit(
            f"[bold cyan]CellSight[/bold cyan] v{__version__}\n"
            f"Page: [yellow]{snapshot.name}[/yellow]\n"
            f"Cell: [yellow]{cell_id}[/yellow]\n"
            f"Backend: [dim]{config.api_base_url}[/dim]",
            border_style="cyan",
        )
    )

    try:
        asyncio.run(
            _explain(
                snapshot,
                cell_id,
                config,
                transcript,
                format or config.transcript_format,
                interactive=not no_follow_ups,
            )
        )
    except CellSightError as e:
        _fail("Explanation Failed", e)


@main.command()
def config_show():
    """Show current configuration."""
    config = _load_config()
    console.print(Panel.fit("[bold cyan]CellSight Configuration[/bold cyan]", border_style="cyan"))
    console.print()
    console.print(f"[cyan]API Base URL:[/cyan] {config.api_base_url}")
    console.print(f"[cyan]Request Timeout:[/cyan] {config.request_timeout}s")
    console.print(f"[cyan]Login Path:[/cyan] {config.login_path}")
    console.print(f"[cyan]Analysis Path:[/cyan] {config.analysis_path}")
    console.print(f"[cyan]Chat Path:[/cyan] {config.chat_path}")
    console.print(f"[cyan]Log Level:[/cyan] {config.log_level}")
    console.print(f"[cyan]Transcript Format:[/cyan] {config.transcript_format}")


if __name__ == "__main__":
    main()
