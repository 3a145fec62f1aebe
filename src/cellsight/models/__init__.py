"""Data models for CellSight."""

from cellsight.models.cell import (
    Cell,
    CodeCell,
    DisplayOutput,
    ExecutedCodeRecord,
    MarkdownCell,
    Output,
    ResultOutput,
    StderrOutput,
    StdoutOutput,
)
from cellsight.models.conversation import (
    ConversationPage,
    ConversationState,
    Transcript,
    TranscriptMetadata,
)
from cellsight.models.api import (
    AnalysisRequest,
    ApiError,
    ChatRequest,
    ContextEntry,
    LoginResponse,
    OutputPayload,
)

__all__ = [
    "Cell",
    "CodeCell",
    "MarkdownCell",
    "Output",
    "ResultOutput",
    "StdoutOutput",
    "StderrOutput",
    "DisplayOutput",
    "ExecutedCodeRecord",
    "ConversationPage",
    "ConversationState",
    "Transcript",
    "TranscriptMetadata",
    "AnalysisRequest",
    "ApiError",
    "ChatRequest",
    "ContextEntry",
    "LoginResponse",
    "OutputPayload",
]
