"""Tracking code cell executions as the host document changes."""

import asyncio
import logging
from typing import Callable, Optional

from bs4 import Tag

from cellsight import ExtractionError
from cellsight.host.document import HostDocument, Mutation, Subscription
from cellsight.models import CodeCell, ExecutedCodeRecord
from cellsight.parsing.scanner import CellHandle, CodeCellHandle, TreeScanner
from cellsight.tracking.ledger import ExecutionLedger, get_ledger
from cellsight.tracking.registry import CellIdentityRegistry, get_registry

logger = logging.getLogger(__name__)

OnExecuted = Callable[[int, CodeCellHandle, CodeCell], None]


class NotebookWatcher:
    """Watches code cells and records every completed run in the ledger.

    Each code cell gets one status watcher, however many times it is
    rescanned. A run is recorded once, when the cell's counter moves to a
    value not yet recorded for that cell.
    """

    def __init__(
        self,
        document: HostDocument,
        scanner: Optional[TreeScanner] = None,
        registry: Optional[CellIdentityRegistry] = None,
        ledger: Optional[ExecutionLedger] = None,
        on_executed: Optional[OnExecuted] = None,
        record_existing: bool = False,
    ):
        """Initialize the watcher.

        Args:
            document: Document to watch
            scanner: Scanner used to find cells (defaults to a new one)
            registry: Identity registry (defaults to the process-wide one)
            ledger: Execution ledger (defaults to the process-wide one)
            on_executed: Called after each recorded run
            record_existing: Also record cells that already show a
                completed run when first mounted
        """
        self.document = document
        self.scanner = scanner or TreeScanner(document)
        self.registry = registry if registry is not None else get_registry()
        self.ledger = ledger if ledger is not None else get_ledger()
        self.on_executed = on_executed
        self.record_existing = record_existing

        self.mounted: dict[int, CodeCellHandle] = {}
        self._last_counts: dict[int, int] = {}
        self._subscriptions: list[Subscription] = []
        self._pending: set[asyncio.Future] = set()

    def setup(self, root: Tag) -> list[int]:
        """Mount every code cell at or under root.

        Must be called from a running event loop. Cells still waiting for
        their status element are mounted when it appears.

        Args:
            root: Element to scan

        Returns:
            list[int]: Ids of the cells mounted by this call
        """
        mounted = []
        for future in self.scanner.scan(root):
            if future.done():
                cell_id = self._mount(future)
                if cell_id is not None:
                    mounted.append(cell_id)
            else:
                self._pending.add(future)
                future.add_done_callback(self._mount_later)
        return mounted

    def start(self) -> None:
        """Mount the current document and follow cells added later."""
        root = self.document.root
        self.setup(root)
        self._subscriptions.append(
            self.document.subscribe(root, self._on_nodes_added, kinds=("child_list",))
        )

    def stop(self) -> None:
        """Cancel every watch and abandon cells still waiting for a status."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        for future in list(self._pending):
            future.cancel()
        self._pending.clear()

    def _on_nodes_added(self, mutation: Mutation, subscription: Subscription) -> None:
        for node in mutation.added_nodes:
            if isinstance(node, Tag):
                self.setup(node)

    def _mount_later(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        self._mount(future)

    def _mount(self, future: "asyncio.Future[CellHandle]") -> Optional[int]:
        """Install the status watcher for a classified cell."""
        if future.cancelled():
            return None
        error = future.exception()
        if error is not None:
            logger.warning("Skipping cell element: %s", error)
            return None

        handle = future.result()
        if not isinstance(handle, CodeCellHandle):
            return None

        cell_id = self.registry.identify(handle.node)
        if cell_id in self.mounted:
            return None

        def on_status_change(mutation: Mutation, subscription: Subscription) -> None:
            self._check(cell_id, handle)

        self._subscriptions.append(
            self.document.subscribe(
                handle.status,
                on_status_change,
                kinds=("character_data", "child_list"),
            )
        )
        self.mounted[cell_id] = handle
        logger.debug("Mounted cell %d", cell_id)

        if self.record_existing:
            self._check(cell_id, handle)
        else:
            self._seed(cell_id, handle)
        return cell_id

    def _seed(self, cell_id: int, handle: CodeCellHandle) -> None:
        """Remember the run a cell already shows so it is not taken for a new one."""
        try:
            count = self.scanner.extractor.execution_count(handle.status)
        except ExtractionError as e:
            logger.warning("Cannot read the current run of cell %d: %s", cell_id, e)
            return
        if count is not None:
            self._last_counts[cell_id] = count

    def _check(self, cell_id: int, handle: CodeCellHandle) -> None:
        """Record the cell's run if it completed since the last record."""
        if not (self.document.is_attached(handle.node) and self.document.is_attached(handle.status)):
            return

        try:
            cell = handle.get_cell()
        except Exception:
            logger.exception("Failed to extract cell %d", cell_id)
            raise

        if cell is None or cell.execution_count is None:
            return
        if self._last_counts.get(cell_id) == cell.execution_count:
            return

        self._last_counts[cell_id] = cell.execution_count
        self.ledger.record(
            ExecutedCodeRecord(
                cell_id=cell_id,
                code="\n".join(cell.source),
                execution_count=cell.execution_count,
            )
        )
        if self.on_executed is not None:
            self.on_executed(cell_id, handle, cell)
