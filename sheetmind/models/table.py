"""Table model: the normalized output of the ingestion pipeline."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

RowValue = Union[str, int, float, bool, None]
Row = Dict[str, RowValue]

SOURCE_SHEET_COLUMN = "_sourceSheet"


@dataclass
class Table:
    """Ordered columns plus row mappings.

    Every row's keys are a subset of `columns`. Rows produced by the table
    builder carry every column of their sheet; merged tables may leave out
    columns a row's sheet never had.
    """

    columns: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    source_label: str = ""
    sheet_name: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.columns and not self.rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rows": [dict(row) for row in self.rows],
            "source_label": self.source_label,
            "sheet_name": self.sheet_name,
        }
