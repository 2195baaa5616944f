"""Excel (xlsx/xlsm) parser implementation.

Opens the workbook twice in read-only mode: once with cached values
(data_only=True) and once with formulas (data_only=False). Both passes are
streamed row by row and zipped, so each cell gets its computed value, its
formula text and its number format.
"""
from datetime import date, datetime, time, timedelta
import io
from itertools import zip_longest
from typing import Any, Optional, Tuple

from openpyxl import load_workbook
import structlog

from sheetmind.errors.exceptions import ParserError
from sheetmind.models.cell import Cell
from sheetmind.models.workbook import Sheet, Workbook
from sheetmind.parsers.base_parser import ParserInput, WorkbookParser
from sheetmind.services.date_heuristic import DATE_FORMAT, format_datetime
from sheetmind.services.formula_classifier import is_image_formula

logger = structlog.get_logger(__name__)


def _formula_text(value: Any) -> Optional[str]:
    """Formula string of a formula-pass cell value, or None for constants."""
    if isinstance(value, str):
        return value if value.startswith("=") else None
    # openpyxl returns ArrayFormula / DataTableFormula objects for array formulas
    text = getattr(value, "text", None)
    if isinstance(text, str) and text:
        return text if text.startswith("=") else "=" + text
    return None


def _scalar(value: Any) -> Any:
    """Normalize a cached cell value to a Cell scalar."""
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, timedelta):
        return str(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class ExcelParser(WorkbookParser):
    """Parser for xlsx/xlsm workbooks using openpyxl.

    Features:
    - Streams rows in read-only mode (bounded memory on large files)
    - Keeps formula text next to the cached value
    - Promotes =IMAGE(...) / image =HYPERLINK(...) formulas into the value slot
    - Native dates become display strings; other number formats are kept
      on the cell for the date heuristic
    """

    supported_extensions: Tuple[str, ...] = ("xlsx", "xlsm")

    def get_parser_name(self) -> str:
        """Return parser identifier."""
        return "xlsx"

    def parse(self, content: ParserInput, source_label: str = "") -> Workbook:
        """Parse workbook bytes.

        Args:
            content: xlsx file bytes
            source_label: File name or URL for messages

        Returns:
            Workbook with one Sheet per worksheet

        Raises:
            ParserError: If the bytes are not a readable xlsx workbook
        """
        if isinstance(content, str):
            raise ParserError("Excel content must be bytes", details={"source": source_label})

        log = logger.bind(source=source_label, size_bytes=len(content))
        try:
            values_wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
            formulas_wb = load_workbook(io.BytesIO(content), read_only=True, data_only=False)
        except Exception as e:
            raise ParserError(
                f"Failed to open Excel workbook: {e}",
                details={"source": source_label},
            ) from e

        workbook = Workbook(title=source_label, source_label=source_label, loaded_via="xlsx")
        try:
            for name in values_wb.sheetnames:
                sheet = self._read_worksheet(values_wb[name], formulas_wb[name], name)
                workbook.add_sheet(name, sheet)
        except Exception as e:
            raise ParserError(
                f"Failed to read Excel workbook: {e}",
                details={"source": source_label},
            ) from e
        finally:
            values_wb.close()
            formulas_wb.close()

        log.info("excel_parsed", sheets=len(workbook.sheet_names))
        return workbook

    def _read_worksheet(self, values_ws: Any, formulas_ws: Any, name: str) -> Sheet:
        sheet = Sheet(name)
        rows = zip_longest(values_ws.iter_rows(), formulas_ws.iter_rows(), fillvalue=())
        for r, (value_row, formula_row) in enumerate(rows):
            for c, (value_cell, formula_cell) in enumerate(
                zip_longest(value_row, formula_row, fillvalue=None)
            ):
                cached = getattr(value_cell, "value", None)
                formula = _formula_text(getattr(formula_cell, "value", None))
                number_format = getattr(value_cell, "number_format", None)
                if number_format == "General":
                    number_format = None

                if formula is not None and is_image_formula(formula):
                    cell = Cell(raw_value=formula, formula=formula)
                else:
                    cell = Cell(
                        raw_value=_scalar(cached),
                        formula=formula,
                        number_format=number_format,
                    )
                sheet.set_cell(r, c, cell)
        return sheet
