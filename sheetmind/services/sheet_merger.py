"""Multi-Sheet Merger: combines several tables into one with a provenance column."""
from typing import List, Optional, Sequence

import structlog

from sheetmind.models.table import SOURCE_SHEET_COLUMN, Row, Table
from sheetmind.models.workbook import Workbook
from sheetmind.services.scheduler import CancellationToken
from sheetmind.services.table_builder import TableBuilder

logger = structlog.get_logger(__name__)


def merged_label(sheet_count: int) -> str:
    return f"Merged ({sheet_count} sheets)"


def merge_tables(tables: Sequence[Table]) -> Table:
    """
    Concatenate tables in the given order.

    Columns are _sourceSheet followed by the first-seen union of the input
    columns. Each row starts with _sourceSheet and keeps only the keys of its
    own table; columns from other tables are absent, not filled.
    """
    columns: List[str] = [SOURCE_SHEET_COLUMN]
    seen = {SOURCE_SHEET_COLUMN}
    rows: List[Row] = []

    for table in tables:
        for column in table.columns:
            if column not in seen:
                seen.add(column)
                columns.append(column)

    for table in tables:
        source = table.sheet_name or table.source_label
        for row in table.rows:
            merged: Row = {SOURCE_SHEET_COLUMN: source}
            for key, value in row.items():
                if key != SOURCE_SHEET_COLUMN:
                    merged[key] = value
            rows.append(merged)

    return Table(columns=columns, rows=rows, source_label=merged_label(len(tables)))


def _known_sheets(workbook: Workbook, names: Sequence[str]) -> List[str]:
    known = []
    for name in names:
        if name in workbook.sheets:
            known.append(name)
        else:
            logger.warning("merge_sheet_not_found", sheet_name=name)
    return known


def merge_sheets(workbook: Workbook, names: Sequence[str], builder: TableBuilder) -> Table:
    """Build each named sheet (caller order) and merge the results."""
    tables = [
        builder.build(workbook.get_sheet(name), source_label=workbook.source_label)
        for name in _known_sheets(workbook, names)
    ]
    return merge_tables(tables)


async def merge_sheets_async(
    workbook: Workbook,
    names: Sequence[str],
    builder: TableBuilder,
    chunk_size: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> Table:
    """Chunked variant of merge_sheets; output is identical."""
    tables: List[Table] = []
    for name in _known_sheets(workbook, names):
        tables.append(
            await builder.build_async(
                workbook.get_sheet(name),
                source_label=workbook.source_label,
                chunk_size=chunk_size,
                cancel_token=cancel_token,
            )
        )
    return merge_tables(tables)

