"""Tests for data models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from cellsight.models import (
    Cell,
    CodeCell,
    ConversationPage,
    ConversationState,
    MarkdownCell,
    StderrOutput,
)


class TestCellModels:
    """Test cell snapshots."""

    def test_cell_union_discriminates(self):
        """Test that cell_type selects the cell model."""
        adapter = TypeAdapter(Cell)

        code = adapter.validate_python(
            {
                "cell_type": "code",
                "execution_count": 1,
                "source": ["raise ValueError"],
                "outputs": [{"output_type": "stderr", "text": ["ValueError"]}],
            }
        )
        markdown = adapter.validate_python({"cell_type": "markdown", "source": ["# Title"]})

        assert isinstance(code, CodeCell)
        assert code.outputs == [StderrOutput(text=["ValueError"])]
        assert isinstance(markdown, MarkdownCell)

    def test_unknown_output_type_rejected(self):
        """Test that outputs must carry a known output_type."""
        with pytest.raises(ValidationError):
            CodeCell(source=["x"], outputs=[{"output_type": "widget", "text": []}])

    def test_cells_are_frozen(self):
        """Test that snapshots cannot be modified."""
        cell = CodeCell(source=["x"])
        with pytest.raises(ValidationError):
            cell.execution_count = 2


class TestConversationPage:
    """Test ConversationPage."""

    def test_wire_names(self):
        """Test that follow-ups are read from the wire name."""
        page = ConversationPage.model_validate(
            {"chat_id": "c1", "explanation": "Hi", "followUps": ["Why?"]}
        )
        assert page.follow_ups == ["Why?"]
        assert page.details is None

    def test_partial_page(self):
        """Test that every field may still be missing."""
        page = ConversationPage.model_validate({})
        assert page.explanation is None
        assert page.follow_ups is None


class TestConversationState:
    """Test the page window of ConversationState."""

    def test_initial_state(self):
        """Test the idle state."""
        state = ConversationState()
        assert state.pages == ()
        assert state.current_page_index == 0
        assert not state.is_loading

    def test_in_flight_page_allowed_while_loading(self):
        """Test that the index may point past the last page while loading."""
        state = ConversationState(pages=(ConversationPage(),), current_page_index=1, is_loading=True)
        assert state.current_page_index == 1

    def test_index_past_last_page_rejected_when_idle(self):
        """Test that a settled state points at an existing page."""
        with pytest.raises(ValidationError, match="in-flight"):
            ConversationState(pages=(ConversationPage(),), current_page_index=1)

    def test_index_outside_window_rejected(self):
        """Test that the index cannot leave the page window."""
        with pytest.raises(ValidationError):
            ConversationState(pages=(), current_page_index=1, is_loading=True)
        with pytest.raises(ValidationError):
            ConversationState(current_page_index=-1)
