"""Data models for cells read out of the host document."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ResultOutput(BaseModel):
    """Value of the last expression of a cell."""

    output_type: Literal["result"] = "result"
    text: list[str]

    model_config = ConfigDict(frozen=True)


class StdoutOutput(BaseModel):
    """Text written to standard output."""

    output_type: Literal["stdout"] = "stdout"
    text: list[str]

    model_config = ConfigDict(frozen=True)


class StderrOutput(BaseModel):
    """Error output, tracebacks included."""

    output_type: Literal["stderr"] = "stderr"
    text: list[str]

    model_config = ConfigDict(frozen=True)


class DisplayOutput(BaseModel):
    """Rich display output. Its content is not extractable."""

    output_type: Literal["display"] = "display"

    model_config = ConfigDict(frozen=True)


Output = Annotated[
    Union[ResultOutput, StdoutOutput, StderrOutput, DisplayOutput],
    Field(discriminator="output_type"),
]


class CodeCell(BaseModel):
    """Snapshot of a code cell.

    Attributes:
        cell_type: Always "code"
        execution_count: Counter of the last completed run (None if never run)
        outputs: Outputs rendered under the cell
        source: Source lines in display order
    """

    cell_type: Literal["code"] = "code"
    execution_count: Optional[int] = None
    outputs: list[Output] = Field(default_factory=list)
    source: list[str]

    model_config = ConfigDict(frozen=True)


class MarkdownCell(BaseModel):
    """Snapshot of a text cell.

    Attributes:
        cell_type: Always "markdown"
        source: Rendered text lines
    """

    cell_type: Literal["markdown"] = "markdown"
    source: list[str]

    model_config = ConfigDict(frozen=True)


Cell = Annotated[Union[CodeCell, MarkdownCell], Field(discriminator="cell_type")]


class ExecutedCodeRecord(BaseModel):
    """One completed execution of a code cell.

    Attributes:
        cell_id: Identity assigned to the cell node
        code: Cell source joined with newlines
        execution_count: Counter shown by the host for this run
    """

    cell_id: int
    code: str
    execution_count: int

    model_config = ConfigDict(frozen=True)
