"""Cross-Reference Detector: finds IMPORTRANGE formulas pointing at other spreadsheets.

Output is informational (a sheet that imports another one depends on that
sheet's sharing permissions too). Nothing here fetches the referenced
spreadsheets.
"""
import re
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

from sheetmind.models.cross_reference import CrossReference
from sheetmind.models.workbook import Workbook
from sheetmind.utils.a1_notation import encode_cell_address
from sheetmind.utils.sheets_url import extract_spreadsheet_id

logger = structlog.get_logger(__name__)

IMPORTRANGE_RE = re.compile(
    r"""IMPORTRANGE\s*\(\s*["']([^"']+)["']\s*,\s*["']([^"']+)["']\s*\)""",
    re.IGNORECASE,
)
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9-_]+$")
_RANGE_SHEET_RE = re.compile(r"^([^!]+)!")


def target_id(url_or_id: str) -> Optional[str]:
    """Spreadsheet ID from an IMPORTRANGE first argument (URL or bare ID)."""
    spreadsheet_id = extract_spreadsheet_id(url_or_id)
    if spreadsheet_id:
        return spreadsheet_id
    candidate = url_or_id.strip()
    return candidate if _BARE_ID_RE.match(candidate) else None


def range_sheet_name(target_range: str) -> Optional[str]:
    """Sheet part of a range: "Sheet1!A:Z" -> "Sheet1", "'My Tab'!A1" -> "My Tab"."""
    match = _RANGE_SHEET_RE.match(target_range)
    if not match:
        return None
    name = match.group(1)
    if len(name) >= 2 and name.startswith("'") and name.endswith("'"):
        name = name[1:-1].replace("''", "'")
    return name


def _scan(
    cells: Iterable[Tuple[int, int, Any]],
    sheet_name: str,
    seen: Set[str],
) -> List[CrossReference]:
    references: List[CrossReference] = []
    for row, col, text in cells:
        if not isinstance(text, str) or "IMPORTRANGE" not in text.upper():
            continue
        for match in IMPORTRANGE_RE.finditer(text):
            url, target_range = match.group(1), match.group(2)
            spreadsheet_id = target_id(url)
            if spreadsheet_id is None or spreadsheet_id in seen:
                continue
            seen.add(spreadsheet_id)
            references.append(
                CrossReference(
                    target_spreadsheet_id=spreadsheet_id,
                    target_range=target_range,
                    found_in_sheet=sheet_name,
                    found_in_cell=encode_cell_address(row, col),
                    target_url=url,
                    target_sheet_name=range_sheet_name(target_range),
                )
            )
    return references


def detect_in_grid(
    grid: Sequence[Sequence[Any]],
    sheet_name: str,
    seen: Optional[Set[str]] = None,
) -> List[CrossReference]:
    """Scan a row-major formula grid (e.g. a FORMULA-rendered values response)."""
    seen = set() if seen is None else seen
    cells = (
        (r, c, value)
        for r, row in enumerate(grid)
        for c, value in enumerate(row)
    )
    return _scan(cells, sheet_name, seen)


def detect_cross_references(workbook: Workbook) -> List[CrossReference]:
    """
    Scan every loaded sheet in workbook order, row-major within a sheet.

    Formula text is checked first, falling back to the cell value. Results
    are deduplicated by target spreadsheet ID; the first occurrence wins.
    """
    seen: Set[str] = set()
    references: List[CrossReference] = []
    for name in workbook.sheet_names:
        sheet = workbook.sheets.get(name)
        if sheet is None:
            continue
        cells = ((r, c, cell.formula or cell.raw_value) for r, c, cell in sheet.iter_cells())
        references.extend(_scan(cells, name, seen))

    if references:
        logger.info(
            "cross_references_detected",
            count=len(references),
            targets=[ref.target_spreadsheet_id for ref in references],
        )
    return references
