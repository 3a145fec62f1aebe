"""Data models for assistant conversations."""

from datetime import UTC, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConversationPage(BaseModel):
    """One turn of assistant output, possibly still streaming.

    Attributes:
        explanation: Main answer text
        details: Optional longer discussion
        follow_ups: Suggested follow-up questions
    """

    explanation: Optional[str] = None
    details: Optional[str] = None
    follow_ups: Optional[list[str]] = Field(default=None, alias="followUps")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ConversationState(BaseModel):
    """Observable state of one conversation.

    Attributes:
        pages: Pages received so far, oldest first
        current_page_index: Page the user is looking at
        is_loading: Whether a request is outstanding
        error: Message of the last failed request, if any
    """

    pages: tuple[ConversationPage, ...] = ()
    current_page_index: int = 0
    is_loading: bool = False
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_page_index(self) -> "ConversationState":
        """Keep the page pointer inside the page window."""
        if not 0 <= self.current_page_index <= len(self.pages):
            raise ValueError(
                f"Page index {self.current_page_index} outside 0..{len(self.pages)}"
            )
        if self.pages and self.current_page_index == len(self.pages) and not self.is_loading:
            raise ValueError("Only an in-flight page may sit past the last page")
        return self


class TranscriptMetadata(BaseModel):
    """Metadata about a saved conversation.

    Attributes:
        base_url: Backend the conversation ran against
        generated_at: ISO timestamp of the save
        total_pages: Number of pages in the transcript
    """

    base_url: str
    generated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    total_pages: int = 0


class Transcript(BaseModel):
    """Complete conversation about one cell.

    Attributes:
        cell_id: Identity of the explained cell
        source: Source lines of the explained cell
        execution_count: Execution the conversation is about
        questions: Follow-up questions, in the order asked
        pages: Pages received, one per request
        metadata: Save metadata
    """

    cell_id: int
    source: list[str]
    execution_count: Optional[int] = None
    questions: list[str] = Field(default_factory=list)
    pages: list[ConversationPage]
    metadata: TranscriptMetadata

    def model_post_init(self, __context) -> None:
        """Update metadata counts after initialization."""
        self.metadata.total_pages = len(self.pages)
