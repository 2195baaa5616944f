"""CSV/TSV parser implementation."""
import csv
import io
import re
from typing import Any, Tuple

import pandas as pd
import structlog

from sheetmind.errors.exceptions import ParserError
from sheetmind.models.workbook import Sheet, Workbook
from sheetmind.parsers.base_parser import ParserInput, WorkbookParser

logger = structlog.get_logger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

# Leading zeros and long digit runs are identifiers, not numbers
_MAX_INT_DIGITS = 15

_DELIMITERS = (",", "\t", ";")


def coerce_scalar(text: Any) -> Any:
    """Convert a CSV field to int, float or bool where it is unambiguous.

    '007' and 20-digit IDs stay text; TRUE/FALSE (any case) become bools.
    Missing fields of short rows come back from pandas as NaN and map to "".
    """
    if not isinstance(text, str):
        return ""
    value = text.strip()
    if not value:
        return ""
    upper = value.upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    if _INT_RE.match(value):
        digits = value.lstrip("+-")
        if (len(digits) > 1 and digits.startswith("0")) or len(digits) > _MAX_INT_DIGITS:
            return text
        return int(value)
    if _FLOAT_RE.match(value):
        try:
            return float(value)
        except ValueError:
            return text
    return text


def sniff_delimiter(text: str) -> str:
    """Pick the most frequent of comma, tab and semicolon on the first non-blank line."""
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    counts = {delim: first_line.count(delim) for delim in _DELIMITERS}
    best = max(_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def decode_text(content: ParserInput) -> str:
    """Decode bytes as UTF-8 (BOM tolerated), falling back to latin-1."""
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("csv_decode_fallback_latin1")
        return content.decode("latin-1")


class CsvParser(WorkbookParser):
    """Parser for delimited text using pandas.

    Features:
    - Delimiter sniffing (comma, tab, semicolon)
    - Every field read as text, then coerced to int/float/bool when unambiguous
    - UTF-8 with latin-1 fallback for undecodable bytes
    - One sheet named after the source (or "Sheet1")
    """

    supported_extensions: Tuple[str, ...] = ("csv", "tsv", "txt")

    def __init__(self, sheet_name: str = "Sheet1"):
        self.sheet_name = sheet_name

    def get_parser_name(self) -> str:
        """Return parser identifier."""
        return "csv"

    def parse(self, content: ParserInput, source_label: str = "") -> Workbook:
        """Parse delimited text into a one-sheet Workbook.

        Raises:
            ParserError: If pandas cannot tokenize the content
        """
        text = decode_text(content)
        workbook = Workbook(title=source_label, source_label=source_label, loaded_via="csv")
        if not text.strip():
            workbook.add_sheet(self.sheet_name)
            return workbook

        delimiter = sniff_delimiter(text)
        # Ragged rows: pandas sizes columns from the first line unless given names
        width = max((len(record) for record in csv.reader(io.StringIO(text), delimiter=delimiter)), default=1)
        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=delimiter,
                engine="python",
                header=None,
                names=list(range(max(width, 1))),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            raise ParserError(
                f"Failed to parse delimited text: {e}",
                details={"source": source_label},
            ) from e

        rows = [[coerce_scalar(field) for field in record] for record in df.itertuples(index=False)]
        sheet = Sheet.from_rows(self.sheet_name, rows)
        workbook.add_sheet(self.sheet_name, sheet)

        logger.info(
            "csv_parsed",
            source=source_label,
            delimiter=delimiter,
            rows=sheet.extent.rows,
            cols=sheet.extent.cols,
        )
        return workbook
