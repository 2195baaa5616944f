"""
Sheet and Workbook Models

A Sheet stores cells sparsely, keyed by 0-based (row, col), so wide but
sparse sheets stay small. A Workbook owns its sheets in source order.
"""

from dataclasses import dataclass, field
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sheetmind.models.cell import Cell, CellValue
from sheetmind.models.cross_reference import CrossReference

# Characters not allowed in worksheet names
_ILLEGAL_SHEET_NAME_CHARS = re.compile(r"[:\\/?*\[\]]")


def sanitize_sheet_name(name: str) -> str:
    """Replace characters that are illegal in worksheet names with '_'."""
    return _ILLEGAL_SHEET_NAME_CHARS.sub("_", name)


@dataclass(frozen=True)
class SheetExtent:
    rows: int = 0
    cols: int = 0


class Sheet:
    """Sparse 2D grid of cells."""

    __slots__ = ("name", "_cells", "_rows", "_cols")

    def __init__(self, name: str):
        self.name = name
        self._cells: Dict[Tuple[int, int], Cell] = {}
        self._rows = 0
        self._cols = 0

    @classmethod
    def from_rows(cls, name: str, rows: Sequence[Sequence[Any]]) -> "Sheet":
        """Build a sheet from a row-major list of raw values."""
        sheet = cls(name)
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if value is None or value == "":
                    continue
                sheet.set_cell(r, c, Cell(raw_value=value))
        return sheet

    @property
    def extent(self) -> SheetExtent:
        return SheetExtent(rows=self._rows, cols=self._cols)

    def __len__(self) -> int:
        return len(self._cells)

    def set_cell(self, row: int, col: int, cell: Cell) -> None:
        """Store a cell and grow the extent. Empty cells are not stored."""
        if cell.is_empty:
            return
        self._cells[(row, col)] = cell
        if row >= self._rows:
            self._rows = row + 1
        if col >= self._cols:
            self._cols = col + 1

    def set_value(self, row: int, col: int, value: CellValue, formula: Optional[str] = None) -> None:
        self.set_cell(row, col, Cell(raw_value=value, formula=formula))

    def get_cell(self, row: int, col: int) -> Optional[Cell]:
        return self._cells.get((row, col))

    def iter_cells(self) -> Iterator[Tuple[int, int, Cell]]:
        """Iterate stored cells in row-major order."""
        for (r, c) in sorted(self._cells):
            yield r, c, self._cells[(r, c)]

    def clear(self) -> None:
        """Drop all cells (used once the sheet's table has been built)."""
        self._cells.clear()
        self._rows = 0
        self._cols = 0


@dataclass
class Workbook:
    """Ordered collection of sheets loaded from one source."""

    title: str = ""
    source_label: str = ""
    loaded_via: str = ""
    sheet_names: List[str] = field(default_factory=list)
    sheets: Dict[str, Sheet] = field(default_factory=dict)
    sheet_ids: Dict[str, int] = field(default_factory=dict)
    sheet_errors: Dict[str, str] = field(default_factory=dict)
    cross_references: List[CrossReference] = field(default_factory=list)

    def unique_sheet_name(self, name: str) -> str:
        """Sanitize a name and suffix it until it does not collide."""
        base = sanitize_sheet_name(name) or "Sheet"
        candidate = base
        n = 1
        while candidate in self.sheets or candidate in self.sheet_names:
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    def add_sheet(self, name: str, sheet: Optional[Sheet] = None, sheet_id: Optional[int] = None) -> Sheet:
        """Append a sheet, sanitizing its name. Returns the stored sheet."""
        unique = self.unique_sheet_name(name)
        if sheet is None:
            sheet = Sheet(unique)
        sheet.name = unique
        self.sheet_names.append(unique)
        self.sheets[unique] = sheet
        if sheet_id is not None:
            self.sheet_ids[unique] = sheet_id
        return sheet

    def add_placeholder(self, name: str, error: str, sheet_id: Optional[int] = None) -> Sheet:
        """Append an empty sheet standing in for one that failed to load."""
        sheet = self.add_sheet(name, sheet_id=sheet_id)
        self.sheet_errors[sheet.name] = error
        return sheet

    def get_sheet(self, name: str) -> Sheet:
        """Return a sheet by name. Raises KeyError if unknown or released."""
        return self.sheets[name]

    def pop_sheet(self, name: str) -> Sheet:
        """Release a sheet from the workbook; its name stays in sheet_names."""
        return self.sheets.pop(name)

    @property
    def failed_sheets(self) -> List[str]:
        return [name for name in self.sheet_names if name in self.sheet_errors]
