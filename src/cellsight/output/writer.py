"""Output writing for conversation transcripts in various formats."""

import json
from pathlib import Path
from typing import Literal

from cellsight.models import ConversationPage, Transcript


class TranscriptWriter:
    """Write conversation transcripts in various formats.

    Supports JSON, text, and markdown output formats.
    """

    def write(
        self,
        transcript: Transcript,
        output_path: Path | str,
        format: Literal["json", "text", "markdown"] = "markdown",
    ) -> Path:
        """Write transcript to file in specified format.

        Args:
            transcript: Transcript to write
            output_path: Path to output file
            format: Output format (json, text, or markdown)

        Returns:
            Path: Path to written file
        """
        output_path = Path(output_path)

        if format == "json":
            return self.write_json(transcript, output_path)
        elif format == "text":
            return self.write_text(transcript, output_path)
        elif format == "markdown":
            return self.write_markdown(transcript, output_path)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def write_json(self, transcript: Transcript, output_path: Path) -> Path:
        """Write transcript as JSON.

        Pages use the wire field names, so a saved transcript can be fed
        back through ConversationPage.model_validate.

        Args:
            transcript: Transcript to write
            output_path: Output file path

        Returns:
            Path: Path to written file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        transcript_dict = {
            "cell_id": transcript.cell_id,
            "source": transcript.source,
            "execution_count": transcript.execution_count,
            "questions": transcript.questions,
            "pages": [
                page.model_dump(by_alias=True, exclude_none=True) for page in transcript.pages
            ],
            "metadata": {
                "base_url": transcript.metadata.base_url,
                "generated_at": transcript.metadata.generated_at,
                "total_pages": transcript.metadata.total_pages,
            },
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(transcript_dict, f, indent=2, ensure_ascii=False)

        return output_path

    def write_text(self, transcript: Transcript, output_path: Path) -> Path:
        """Write transcript as human-readable text.

        Args:
            transcript: Transcript to write
            output_path: Output file path

        Returns:
            Path: Path to written file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        lines = []

        lines.append("=" * 60)
        lines.append(f"CELL {transcript.cell_id} CONVERSATION")
        lines.append("=" * 60)
        lines.append("")

        lines.append(f"Backend: {transcript.metadata.base_url}")
        lines.append(f"Generated: {transcript.metadata.generated_at}")
        lines.append(f"Execution: [{transcript.execution_count}]")
        lines.append(f"Total pages: {transcript.metadata.total_pages}")
        lines.append("")
        lines.append("-" * 60)
        lines.append("")

        lines.extend(transcript.source)
        lines.append("")
        lines.append("-" * 60)
        lines.append("")

        for index, page in enumerate(transcript.pages):
            question = self._question_for(transcript, index)
            lines.append(f"[Page {index + 1}/{transcript.metadata.total_pages}]")
            if question:
                lines.append(f"Q: {question}")
            lines.extend(self._page_lines(page))
            lines.append("")

        lines.append("=" * 60)

        with open(output_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))

        return output_path

    def write_markdown(self, transcript: Transcript, output_path: Path) -> Path:
        """Write transcript as markdown.

        Args:
            transcript: Transcript to write
            output_path: Output file path

        Returns:
            Path: Path to written file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        lines = []

        lines.append(f"# Cell {transcript.cell_id}")
        lines.append("")
        lines.append(f"**Backend:** {transcript.metadata.base_url}  ")
        lines.append(f"**Generated:** {transcript.metadata.generated_at}  ")
        lines.append(f"**Execution:** [{transcript.execution_count}]  ")
        lines.append(f"**Total Pages:** {transcript.metadata.total_pages}")
        lines.append("")

        lines.append("```python")
        lines.extend(transcript.source)
        lines.append("```")
        lines.append("")

        for index, page in enumerate(transcript.pages):
            lines.append(f"## Page {index + 1}/{transcript.metadata.total_pages}")
            lines.append("")

            question = self._question_for(transcript, index)
            if question:
                lines.append(f"> {question}")
                lines.append("")

            if page.explanation:
                lines.append(page.explanation)
                lines.append("")
            if page.details:
                lines.append("### Details")
                lines.append("")
                lines.append(page.details)
                lines.append("")
            if page.follow_ups:
                lines.append("### Follow-ups")
                lines.append("")
                for follow_up in page.follow_ups:
                    lines.append(f"- {follow_up}")
                lines.append("")

            lines.append("---")
            lines.append("")

        with open(output_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))

        return output_path

    def _question_for(self, transcript: Transcript, page_index: int) -> str | None:
        """The question answered by a page (the first page answers none)."""
        if 0 < page_index <= len(transcript.questions):
            return transcript.questions[page_index - 1]
        return None

    def _page_lines(self, page: ConversationPage) -> list[str]:
        lines = []
        if page.explanation:
            lines.append(page.explanation)
        if page.details:
            lines.append("")
            lines.append(page.details)
        if page.follow_ups:
            lines.append("")
            lines.extend(f"  ? {follow_up}" for follow_up in page.follow_ups)
        return lines
