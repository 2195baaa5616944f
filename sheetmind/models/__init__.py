"""Data models for the ingestion pipeline."""

from sheetmind.models.cell import Cell, CellType, CellValue, infer_cell_type
from sheetmind.models.cross_reference import CrossReference
from sheetmind.models.fetch_outcome import (
    FailureKind,
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
)
from sheetmind.models.google_sheets import (
    GoogleSheetsSource,
    SheetMetadata,
    SpreadsheetInfo,
)
from sheetmind.models.table import SOURCE_SHEET_COLUMN, Row, Table
from sheetmind.models.workbook import Sheet, SheetExtent, Workbook, sanitize_sheet_name

__all__ = [
    # Cells and sheets
    "Cell",
    "CellType",
    "CellValue",
    "infer_cell_type",
    "Sheet",
    "SheetExtent",
    "Workbook",
    "sanitize_sheet_name",
    # Output
    "Table",
    "Row",
    "SOURCE_SHEET_COLUMN",
    "CrossReference",
    # Fetch results
    "FailureKind",
    "FetchSuccess",
    "FetchFailure",
    "FetchOutcome",
    # Google Sheets
    "GoogleSheetsSource",
    "SheetMetadata",
    "SpreadsheetInfo",
]
