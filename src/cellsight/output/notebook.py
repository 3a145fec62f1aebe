"""Export extracted cells as a Jupyter notebook."""

from pathlib import Path

import nbformat
from nbformat.notebooknode import NotebookNode

from cellsight.models import Cell, CodeCell, Output


class NotebookExporter:
    """Write extracted cells as an nbformat v4 notebook."""

    def to_notebook(self, cells: list[Cell]) -> NotebookNode:
        """Build a notebook from extracted cells.

        Args:
            cells: Cells in document order

        Returns:
            NotebookNode: The notebook
        """
        nb = nbformat.v4.new_notebook()
        for cell in cells:
            source = "\n".join(cell.source)
            if isinstance(cell, CodeCell):
                nb.cells.append(
                    nbformat.v4.new_code_cell(
                        source,
                        execution_count=cell.execution_count,
                        outputs=[self._to_output(output, cell.execution_count) for output in cell.outputs],
                    )
                )
            else:
                nb.cells.append(nbformat.v4.new_markdown_cell(source))
        return nb

    def export(self, cells: list[Cell], output_path: Path | str) -> Path:
        """Write cells to an .ipynb file.

        Args:
            cells: Cells in document order
            output_path: Path of the notebook to write

        Returns:
            Path: Path to written file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        nb = self.to_notebook(cells)
        nbformat.validate(nb)
        with open(output_path, "w", encoding="utf-8") as f:
            nbformat.write(nb, f)

        return output_path

    def _to_output(self, output: Output, execution_count: int | None) -> NotebookNode:
        if output.output_type == "result":
            return nbformat.v4.new_output(
                "execute_result",
                data={"text/plain": "\n".join(output.text)},
                execution_count=execution_count,
            )
        if output.output_type in ("stdout", "stderr"):
            return nbformat.v4.new_output(
                "stream", name=output.output_type, text="\n".join(output.text)
            )
        return nbformat.v4.new_output("display_data", data={})
