"""History of completed code cell executions."""

import logging
from typing import Optional

from cellsight.models import ExecutedCodeRecord

logger = logging.getLogger(__name__)


class ExecutionLedger:
    """Append-only log of executions, in the order they were observed.

    A cell that runs twice is recorded twice: an explanation of a later run
    may need to refer to what an earlier run did.
    """

    def __init__(self) -> None:
        self._records: list[ExecutedCodeRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def record(self, entry: ExecutedCodeRecord) -> None:
        """Append an execution."""
        self._records.append(entry)
        logger.debug(
            "Recorded execution %d of cell %d", entry.execution_count, entry.cell_id
        )

    def all(self) -> list[ExecutedCodeRecord]:
        """Every recorded execution, oldest first."""
        return list(self._records)

    def context_before(self, execution_count: Optional[int]) -> list[ExecutedCodeRecord]:
        """Executions that ran before the given one.

        Args:
            execution_count: Counter of the execution being explained

        Returns:
            list[ExecutedCodeRecord]: Records with a smaller counter, in
                append order; empty when execution_count is None
        """
        if execution_count is None:
            return []
        return [r for r in self._records if r.execution_count < execution_count]


# Process-wide ledger (lazy-loaded)
_ledger: ExecutionLedger | None = None


def get_ledger() -> ExecutionLedger:
    """Get or create the process-wide ledger."""
    global _ledger
    if _ledger is None:
        _ledger = ExecutionLedger()
    return _ledger


def reset_ledger() -> None:
    """Reset the process-wide ledger (useful for testing)."""
    global _ledger
    _ledger = None
