"""
Table Builder

Turns a Sheet into a Table: the first row supplies column names, every
following row becomes a mapping over all columns. The synchronous and the
chunked async variants consume the same chunk generator, so chunking changes
scheduling only, never output.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import structlog

from sheetmind.config import SheetmindSettings
from sheetmind.models.cell import Cell
from sheetmind.models.table import Row, RowValue, Table
from sheetmind.models.workbook import Sheet
from sheetmind.services.date_heuristic import convert_date_cell, is_date_header
from sheetmind.services.formula_classifier import is_image_formula
from sheetmind.services.scheduler import CancellationToken, CooperativeScheduler

logger = structlog.get_logger(__name__)

EMPTY_HEADER = "__EMPTY"

TableProgressCallback = Callable[[int], None]


def header_text(value: Any) -> str:
    """Column name for a header cell value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_headers(headers: Sequence[Any]) -> List[str]:
    """
    Make header names unique and non-empty.

    Empty headers become __EMPTY, __EMPTY_1, ...; a repeated name X becomes
    X, X_1, X_2, ... Suffixes skip names already taken, so the result never
    collides: ["A", "", "A", "B", ""] -> ["A", "__EMPTY", "A_1", "B", "__EMPTY_1"].
    """
    used: set = set()
    counters: Dict[str, int] = {}
    result: List[str] = []
    for raw in headers:
        base = header_text(raw) or EMPTY_HEADER
        name = base
        if name in used:
            n = counters.get(base, 0)
            while name in used:
                n += 1
                name = f"{base}_{n}"
            counters[base] = n
        used.add(name)
        result.append(name)
    return result


@dataclass
class TablePlan:
    """Everything needed to convert the data rows of one sheet."""

    sheet: Sheet
    columns: List[str]
    date_columns: List[bool]
    preprocess: bool

    @property
    def data_rows(self) -> int:
        return max(0, self.sheet.extent.rows - 1)


def cell_output(cell: Optional[Cell], is_date_column: bool, preprocess: bool) -> RowValue:
    """Output value of one data cell.

    Image formula text first, then a converted date string, then the raw
    value; a missing or empty cell yields "".
    """
    if cell is None:
        return ""
    if preprocess:
        if cell.formula and is_image_formula(cell.formula):
            return cell.formula
        converted = convert_date_cell(cell.raw_value, is_date_column, cell.number_format)
        if converted is not None:
            return converted
    if cell.raw_value is None:
        return ""
    return cell.raw_value


class TableBuilder:
    """Builds Tables from Sheets, synchronously or in cooperative chunks."""

    def __init__(self, settings: SheetmindSettings):
        self.settings = settings

    def plan(self, sheet: Sheet) -> TablePlan:
        extent = sheet.extent
        header_cells = [sheet.get_cell(0, c) for c in range(extent.cols)]
        header_values = [cell.raw_value if cell else None for cell in header_cells]
        columns = normalize_headers(header_values) if extent.rows else []

        plan = TablePlan(
            sheet=sheet,
            columns=columns,
            date_columns=[is_date_header(header_text(v)) for v in header_values],
            preprocess=True,
        )
        # Counts the header row
        if extent.rows > self.settings.large_sheet_row_threshold:
            plan.preprocess = False
            logger.warning(
                "preprocessing_skipped_large_sheet",
                sheet_name=sheet.name,
                total_rows=extent.rows,
                threshold=self.settings.large_sheet_row_threshold,
            )
        return plan

    def build_row(self, plan: TablePlan, row_index: int) -> Row:
        sheet = plan.sheet
        return {
            column: cell_output(sheet.get_cell(row_index, c), plan.date_columns[c], plan.preprocess)
            for c, column in enumerate(plan.columns)
        }

    def iter_chunks(self, plan: TablePlan, chunk_size: int) -> Iterator[List[Row]]:
        """Yield lists of at most chunk_size rows, in sheet order."""
        size = max(1, chunk_size)
        total = plan.sheet.extent.rows
        for start in range(1, total, size):
            yield [self.build_row(plan, r) for r in range(start, min(start + size, total))]

    def build(self, sheet: Sheet, source_label: str = "") -> Table:
        """Build a table in one pass."""
        plan = self.plan(sheet)
        rows: List[Row] = []
        for chunk in self.iter_chunks(plan, self.settings.chunk_size):
            rows.extend(chunk)
        return Table(columns=plan.columns, rows=rows, source_label=source_label, sheet_name=sheet.name)

    async def build_async(
        self,
        sheet: Sheet,
        source_label: str = "",
        chunk_size: Optional[int] = None,
        on_progress: Optional[TableProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Table:
        """
        Build a table chunk by chunk, yielding to the event loop in between.

        Args:
            sheet: Sheet to convert
            source_label: Label stored on the Table
            chunk_size: Rows per chunk (defaults to settings.chunk_size)
            on_progress: Receives the completed percentage (0-100)
            cancel_token: Checked between chunks

        Returns:
            The same Table build() returns for this sheet

        Raises:
            IngestionCancelled: If cancel_token fires
        """
        plan = self.plan(sheet)
        size = chunk_size or self.settings.chunk_size
        scheduler = CooperativeScheduler(cancel_token)
        rows: List[Row] = []
        total = plan.data_rows

        async for chunk in scheduler.run(self.iter_chunks(plan, size)):
            rows.extend(chunk)
            if on_progress is not None and total:
                on_progress(int(len(rows) * 100 / total))

        if on_progress is not None:
            on_progress(100)
        logger.debug("table_built_async", sheet_name=sheet.name, rows=len(rows), yields=scheduler.yields)
        return Table(columns=plan.columns, rows=rows, source_label=source_label, sheet_name=sheet.name)
