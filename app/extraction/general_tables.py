"""Row reconstruction and selection-mark promotion for layout tables."""

from typing import Dict, Iterable, List

from pydantic import BaseModel, Field

from app.extraction.schemas import AnalyzedTable

SELECTED_MARKER = ":selected:"


class GeneralTables(BaseModel):
    rows: List[List[str]] = Field(default_factory=list)  # one list of row strings per table
    selected_fields: Dict[str, str] = Field(default_factory=dict)


def table_rows(table: AnalyzedTable) -> List[str]:
    """Join cell contents row by row with commas.

    Cells arrive in analyzer order; a new row starts whenever the reported
    row index changes, so rows are never re-sorted.
    """
    rows: List[str] = []
    current_row = None
    parts: List[str] = []
    for cell in table.cells:
        if current_row is not None and cell.row_index != current_row:
            rows.append(",".join(parts))
            parts = []
        current_row = cell.row_index
        parts.append(cell.content)
    if current_row is not None:
        rows.append(",".join(parts))
    return rows


def promote_selected_cells(tables: Iterable[AnalyzedTable]) -> Dict[str, str]:
    """Return {cell content: "True"} for every cell carrying the selected marker.

    The key is the cell's full content, marker included; downstream consumers
    of the forms container match on that exact text.
    """
    selected: Dict[str, str] = {}
    for table in tables:
        for cell in table.cells:
            if SELECTED_MARKER in cell.content:
                selected[cell.content] = "True"
    return selected


def extract_general_tables(tables: Iterable[AnalyzedTable]) -> GeneralTables:
    tables = list(tables)
    return GeneralTables(
        rows=[table_rows(t) for t in tables],
        selected_fields=promote_selected_cells(tables),
    )
