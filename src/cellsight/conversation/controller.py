"""State machine for one conversation about a code cell."""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

from pydantic import ValidationError

from cellsight import (
    ConversationStateError,
    ExtractionError,
    NetworkError,
    ProtocolError,
    StreamFormatError,
)
from cellsight.api.client import AssistantClient
from cellsight.models import (
    AnalysisRequest,
    ChatRequest,
    CodeCell,
    ContextEntry,
    ConversationPage,
    ConversationState,
    OutputPayload,
    Transcript,
    TranscriptMetadata,
)
from cellsight.tracking.ledger import ExecutionLedger, get_ledger

logger = logging.getLogger(__name__)

# Failures that leave the conversation as it was before the request
REQUEST_ERRORS = (NetworkError, ProtocolError, StreamFormatError, ValidationError)

StateListener = Callable[[ConversationState], None]


class ConversationPhase(str, Enum):
    """Where a conversation is in its lifecycle."""

    IDLE = "idle"
    OPENING = "opening"
    VIEWING = "viewing"
    APPENDING_FOLLOW_UP = "appending_follow_up"


class Conversation:
    """Pages of assistant output about one cell, and the actions on them.

    State is replaced, never mutated, on every change; presentation code
    subscribes and re-renders from the newest state. At most one request
    is outstanding: while one is loading, follow_up is None.
    """

    def __init__(
        self,
        client: AssistantClient,
        session_id: str,
        cell_id: int,
        get_cell: Callable[[], Optional[CodeCell]],
        ledger: Optional[ExecutionLedger] = None,
    ):
        """Initialize an idle conversation.

        Args:
            client: Backend client
            session_id: Session id from login
            cell_id: Identity of the cell being explained
            get_cell: Reads the current snapshot of the cell
            ledger: Execution history used as context (defaults to the
                process-wide ledger)
        """
        self.client = client
        self.session_id = session_id
        self.cell_id = cell_id
        self.get_cell = get_cell
        self.ledger = ledger if ledger is not None else get_ledger()

        self.chat_id: Optional[str] = None
        self.cell: Optional[CodeCell] = None
        self.questions: list[str] = []

        self._state = ConversationState()
        self._listeners: list[StateListener] = []
        self._opening = False

    @property
    def state(self) -> ConversationState:
        """The current state."""
        return self._state

    @property
    def phase(self) -> ConversationPhase:
        """Lifecycle phase derived from the current state."""
        if self._state.is_loading:
            return ConversationPhase.OPENING if self._opening else ConversationPhase.APPENDING_FOLLOW_UP
        return ConversationPhase.VIEWING if self._state.pages else ConversationPhase.IDLE

    @property
    def max_page(self) -> int:
        """Highest page index the user may move to.

        Includes the in-flight page only while it is loading.
        """
        pages = len(self._state.pages)
        return pages if self._state.is_loading else pages - 1

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener with every new state.

        Returns:
            Callable: Removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Actions

    def open(self) -> "asyncio.Task[None]":
        """Request the explanation of the cell.

        Returns:
            asyncio.Task: Completes when the stream has ended

        Raises:
            ConversationStateError: If the conversation is not idle
            ExtractionError: If the cell has not completed a run
        """
        if self.phase is not ConversationPhase.IDLE:
            raise ConversationStateError(f"Cannot open a conversation in phase {self.phase.value}")

        cell = self.get_cell()
        if cell is None:
            raise ExtractionError(f"Cell {self.cell_id} has not completed a run")

        request = self._analysis_request(cell)
        self.cell = cell
        snapshot = self._state
        chat_id = self.chat_id

        self._opening = True
        self._replace(pages=(), current_page_index=0, is_loading=True, error=None)
        logger.debug("Opening conversation on cell %d with %d context entries", self.cell_id, len(request.context))
        return asyncio.get_running_loop().create_task(
            self._run(self.client.analyse(request), snapshot, chat_id, previous=())
        )

    @property
    def follow_up(self) -> Optional[Callable[[str], Optional["asyncio.Task[None]"]]]:
        """Handler asking a follow-up question, or None while unavailable."""
        if self._state.is_loading or self.chat_id is None:
            return None
        return self._start_follow_up

    @property
    def goto_next(self) -> Optional[Callable[[], None]]:
        """Handler showing the next page, or None on the last one."""
        if self._state.current_page_index >= self.max_page:
            return None
        return lambda: self._move(1)

    @property
    def goto_prev(self) -> Optional[Callable[[], None]]:
        """Handler showing the previous page, or None on the first one."""
        if self._state.current_page_index <= 0 or self.max_page < 0:
            return None
        return lambda: self._move(-1)

    def to_transcript(self, base_url: str = "") -> Transcript:
        """Snapshot the conversation for saving.

        Args:
            base_url: Backend the conversation ran against

        Returns:
            Transcript: Cell, questions and pages received so far
        """
        return Transcript(
            cell_id=self.cell_id,
            source=self.cell.source if self.cell else [],
            execution_count=self.cell.execution_count if self.cell else None,
            questions=list(self.questions),
            pages=list(self._state.pages),
            metadata=TranscriptMetadata(base_url=base_url),
        )

    # Internals

    def _start_follow_up(self, question: str) -> Optional["asyncio.Task[None]"]:
        # A handler fetched before the current request started is stale
        if self._state.is_loading or self.chat_id is None:
            logger.debug("Ignoring follow-up while a request is outstanding")
            return None

        snapshot = self._state
        previous = snapshot.pages
        request = ChatRequest(chat_id=self.chat_id, prompt=question)

        self._opening = False
        self._replace(current_page_index=len(previous), is_loading=True, error=None)
        logger.debug("Asking follow-up on cell %d: %s", self.cell_id, question)
        return asyncio.get_running_loop().create_task(
            self._run(self.client.chat(request), snapshot, self.chat_id, previous, question)
        )

    def _move(self, delta: int) -> None:
        index = self._state.current_page_index + delta
        if 0 <= index <= self.max_page:
            self._replace(current_page_index=index)

    async def _run(
        self,
        frames: AsyncIterator[dict[str, Any]],
        snapshot: ConversationState,
        chat_id: Optional[str],
        previous: tuple[ConversationPage, ...],
        question: Optional[str] = None,
    ) -> None:
        """Fold streamed accumulators into the page list."""
        received = False
        try:
            async for accumulator in frames:
                if accumulator.get("chat_id") is not None:
                    self.chat_id = str(accumulator["chat_id"])
                page = ConversationPage.model_validate(accumulator)
                self._replace(pages=(*previous, page))
                received = True
        except REQUEST_ERRORS as e:
            logger.warning("Request for cell %d failed: %s", self.cell_id, e)
            self._fail(snapshot, chat_id, str(e))
            return
        except BaseException:
            self._fail(snapshot, chat_id, "Request aborted")
            raise

        if not received:
            logger.warning("Empty response for cell %d", self.cell_id)
            self._fail(snapshot, chat_id, "Empty response from assistant")
            return

        # Moves made while loading may point past the last received page
        last = len(self._state.pages) - 1
        self._opening = False
        self._replace(
            current_page_index=min(self._state.current_page_index, last),
            is_loading=False,
        )
        if question is not None:
            self.questions.append(question)

    def _fail(self, snapshot: ConversationState, chat_id: Optional[str], message: str) -> None:
        """Put the conversation back as it was before the request."""
        self._opening = False
        self.chat_id = chat_id
        self._replace(
            pages=snapshot.pages,
            current_page_index=snapshot.current_page_index,
            is_loading=False,
            error=message,
        )

    def _replace(self, **changes: Any) -> None:
        values = {
            "pages": self._state.pages,
            "current_page_index": self._state.current_page_index,
            "is_loading": self._state.is_loading,
            "error": self._state.error,
        }
        values.update(changes)
        self._state = ConversationState(**values)
        for listener in list(self._listeners):
            listener(self._state)

    def _analysis_request(self, cell: CodeCell) -> AnalysisRequest:
        """Build the request explaining cell, with earlier executions as context."""
        context = [
            ContextEntry(cell_id=record.cell_id, code=record.code)
            for record in self.ledger.context_before(cell.execution_count)
        ]
        return AnalysisRequest(
            session_id=self.session_id,
            cell_id=self.cell_id,
            code="\n".join(cell.source),
            output=self._output_payload(cell),
            context=context,
        )

    def _output_payload(self, cell: CodeCell) -> OutputPayload:
        """The most recent output that carries text."""
        for output in reversed(cell.outputs):
            text = getattr(output, "text", None)
            if text is not None:
                return OutputPayload(output_type=output.output_type, text=text)
        return OutputPayload(output_type="stdout", text=[])
