"""
Batched Range Reader

Reads a sheet through the values endpoint in fixed-size row batches. Each
batch is requested twice over the same range (FORMATTED_VALUE and FORMULA),
concurrently, and merged per cell. HTTP 429 retries the same batch after a
fixed delay, so batches are never skipped or duplicated.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Tuple

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from sheetmind.config import SheetmindSettings
from sheetmind.errors.exceptions import FetchError, RateLimitedError
from sheetmind.models.cell import Cell
from sheetmind.models.google_sheets import SheetMetadata
from sheetmind.models.workbook import Sheet, Workbook
from sheetmind.services.formula_classifier import is_image_formula
from sheetmind.services.google_sheets_client import SheetsApiClient
from sheetmind.utils.a1_notation import build_range, column_index_to_letter

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[str, int], None]
Grid = List[List[Any]]


class ProgressTracker:
    """Scales per-sheet progress into 10..90 and never reports a lower value."""

    def __init__(self, on_progress: Optional[ProgressCallback], sheet_count: int):
        self.on_progress = on_progress
        self.sheet_count = max(1, sheet_count)
        self.last = 0

    def report(self, message: str, sheet_index: int, fraction: float) -> None:
        fraction = min(max(fraction, 0.0), 1.0)
        percent = int(10 + 80 * (sheet_index + fraction) / self.sheet_count)
        self.emit(message, percent)

    def emit(self, message: str, percent: int) -> None:
        percent = max(self.last, min(100, percent))
        self.last = percent
        if self.on_progress is not None:
            self.on_progress(message, percent)


def merge_batch(values: Grid, formulas: Grid) -> List[List[Cell]]:
    """
    Merge a value grid and a formula grid covering the same range.

    Image formulas replace the computed value; any other formula is kept
    alongside the computed value in Cell.formula. Either grid may be
    shorter than the other since the API omits trailing empty rows, and
    an IMAGE cell has an empty formatted value.
    """
    merged: List[List[Cell]] = []
    for r in range(max(len(values), len(formulas))):
        value_row = values[r] if r < len(values) else []
        formula_row = formulas[r] if r < len(formulas) else []
        width = max(len(value_row), len(formula_row))
        row_cells: List[Cell] = []
        for c in range(width):
            computed = value_row[c] if c < len(value_row) else ""
            formula = formula_row[c] if c < len(formula_row) else None
            if isinstance(formula, str) and formula.startswith("="):
                if is_image_formula(formula):
                    row_cells.append(Cell(raw_value=formula, formula=formula))
                else:
                    row_cells.append(Cell(raw_value=computed, formula=formula))
            else:
                row_cells.append(Cell(raw_value=computed))
        merged.append(row_cells)
    return merged


class BatchedRangeReader:
    """Reads whole sheets without exceeding per-request row/column limits."""

    def __init__(self, client: SheetsApiClient, settings: SheetmindSettings):
        self.client = client
        self.settings = settings

    def end_column(self, meta: SheetMetadata) -> str:
        """Last column letter to request, capped at settings.max_columns."""
        cap = self.settings.max_columns
        declared = meta.column_count or cap
        if declared > cap:
            logger.warning(
                "sheet_columns_truncated",
                sheet_name=meta.title,
                declared_columns=declared,
                max_columns=cap,
            )
        return column_index_to_letter(min(declared, cap))

    def batch_ranges(self, meta: SheetMetadata) -> List[Tuple[int, int]]:
        """1-based inclusive (start_row, end_row) pairs covering the declared rows."""
        total_rows = meta.row_count or self.settings.default_row_count
        size = self.settings.batch_size
        return [
            (start, min(start + size - 1, total_rows))
            for start in range(1, total_rows + 1, size)
        ]

    async def _fetch_formulas(self, spreadsheet_id: str, range_a1: str) -> Grid:
        try:
            return await self.client.get_values(spreadsheet_id, range_a1, "FORMULA")
        except RateLimitedError:
            raise
        except FetchError as e:
            logger.warning(
                "formula_fetch_failed_using_values_only",
                range=range_a1,
                kind=e.kind.value,
                status_code=e.status_code,
            )
            return []

    async def _read_batch(self, spreadsheet_id: str, range_a1: str) -> Tuple[Grid, Grid]:
        """Fetch the value/formula pair for one range, retrying on 429."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitedError),
            wait=wait_fixed(self.settings.rate_limit_delay_seconds),
            stop=stop_after_attempt(self.settings.rate_limit_max_retries + 1),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "rate_limited_retrying_batch",
                range=range_a1,
                attempt=state.attempt_number,
                delay_seconds=self.settings.rate_limit_delay_seconds,
            ),
        )
        async for attempt in retrying:
            with attempt:
                # Both requests finish before any error propagates
                values, formulas = await asyncio.gather(
                    self.client.get_values(spreadsheet_id, range_a1, "FORMATTED_VALUE"),
                    self._fetch_formulas(spreadsheet_id, range_a1),
                    return_exceptions=True,
                )
                for result in (values, formulas):
                    if isinstance(result, BaseException):
                        raise result
        return values, formulas

    async def read_sheet(
        self,
        spreadsheet_id: str,
        meta: SheetMetadata,
        on_progress: Optional[ProgressCallback] = None,
        sheet_index: int = 0,
        sheet_count: int = 1,
        tracker: Optional[ProgressTracker] = None,
    ) -> Sheet:
        """
        Read every batch of one sheet.

        Args:
            spreadsheet_id: Spreadsheet to read
            meta: Sheet title and declared grid size
            on_progress: Callback receiving (message, percent)
            sheet_index: Position of this sheet among the sheets being loaded
            sheet_count: Number of sheets being loaded
            tracker: Shared progress tracker (created when omitted)

        Returns:
            Sheet named after meta.title

        Raises:
            FetchError: Non-retryable failure or 429 retries exhausted
        """
        tracker = tracker or ProgressTracker(on_progress, sheet_count)
        log = logger.bind(spreadsheet_id=spreadsheet_id, sheet_name=meta.title)
        sheet = Sheet(meta.title)
        end_col = self.end_column(meta)
        batches = self.batch_ranges(meta)
        total_rows = batches[-1][1] if batches else 0

        tracker.report(
            f'Loading "{meta.title}" ({sheet_index + 1}/{sheet_count})...', sheet_index, 0.0
        )
        for start_row, end_row in batches:
            range_a1 = build_range(meta.title, start_row, end_col, end_row)
            values, formulas = await self._read_batch(spreadsheet_id, range_a1)
            # A blank batch can still be followed by data further down
            for r, row_cells in enumerate(merge_batch(values, formulas)):
                for c, cell in enumerate(row_cells):
                    sheet.set_cell(start_row - 1 + r, c, cell)

            tracker.report(
                f'Loading "{meta.title}" rows {start_row}-{end_row}',
                sheet_index,
                end_row / total_rows if total_rows else 1.0,
            )

        log.info("sheet_read_completed", rows=sheet.extent.rows, cols=sheet.extent.cols)
        return sheet

    async def read_workbook(
        self,
        spreadsheet_id: str,
        sheets: Sequence[SheetMetadata],
        workbook: Workbook,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Workbook:
        """
        Read several sheets into `workbook`, in order.

        A sheet that fails becomes an empty placeholder with its error in
        workbook.sheet_errors; the remaining sheets are still read.
        """
        tracker = ProgressTracker(on_progress, len(sheets))
        for index, meta in enumerate(sheets):
            try:
                sheet = await self.read_sheet(
                    spreadsheet_id,
                    meta,
                    sheet_index=index,
                    sheet_count=len(sheets),
                    tracker=tracker,
                )
            except FetchError as e:
                logger.warning(
                    "sheet_read_failed_placeholder_added",
                    spreadsheet_id=spreadsheet_id,
                    sheet_name=meta.title,
                    kind=e.kind.value,
                    error=e.message,
                )
                workbook.add_placeholder(meta.title, e.message, sheet_id=meta.sheet_id)
                continue
            workbook.add_sheet(meta.title, sheet, sheet_id=meta.sheet_id)

        tracker.emit(f"Done. Loaded {len(sheets)} sheet(s)", 100)
        return workbook
