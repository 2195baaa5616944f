"""Cell model: the atomic unit of a sheet."""
from dataclasses import dataclass, field
from typing import Literal, Optional, Union

CellValue = Union[str, int, float, bool, None]
CellType = Literal["string", "number", "boolean", "empty"]


def infer_cell_type(value: CellValue) -> CellType:
    """Infer the cell type from its raw value.

    bool is checked before number since bool is a subclass of int.
    """
    if value is None or value == "":
        return "empty"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


@dataclass(slots=True)
class Cell:
    """A single spreadsheet cell.

    When `formula` is set, `raw_value` holds the last computed value, except
    for image-bearing formulas which are promoted into the value slot
    (`raw_value == formula`).
    """

    raw_value: CellValue = None
    formula: Optional[str] = None
    number_format: Optional[str] = None
    type: CellType = field(init=False)

    def __post_init__(self) -> None:
        self.type = infer_cell_type(self.raw_value)

    @property
    def is_empty(self) -> bool:
        return self.type == "empty" and not self.formula

    @property
    def has_formula(self) -> bool:
        return bool(self.formula)
