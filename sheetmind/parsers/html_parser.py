"""HTML clipboard table parser using stdlib ``html.parser``.

Spreadsheet apps put an HTML ``<table>`` on the clipboard. Google Sheets
adds ``data-sheets-formula`` and ``data-sheets-hyperlink`` attributes, which
carry the formula or link behind each displayed value. Image formulas are
normalized to ``=IMAGE("url")`` so downstream code sees a single form.
"""
from dataclasses import dataclass, field
from html.parser import HTMLParser
import re
from typing import Dict, List, Optional, Tuple

import structlog

from sheetmind.errors.exceptions import ParserError
from sheetmind.models.cell import Cell
from sheetmind.models.workbook import Sheet, Workbook
from sheetmind.parsers.base_parser import ParserInput, WorkbookParser

logger = structlog.get_logger(__name__)

_IMAGE_CALL_RE = re.compile(r'IMAGE\s*\(\s*"([^"]+)"\s*\)', re.IGNORECASE)
_IMAGE_TEXT_RE = re.compile(r"\.(png|jpg|jpeg|gif|webp)(\?|$)", re.IGNORECASE)


@dataclass
class _HtmlCell:
    formula: Optional[str] = None
    hyperlink: Optional[str] = None
    link_href: Optional[str] = None
    img_src: Optional[str] = None
    text_parts: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.text_parts).strip()


def image_formula(url: str) -> str:
    return f'=IMAGE("{url}")'


class TableCollector(HTMLParser):
    """Collects the cells of the first top-level <table> in a document."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.rows: List[List[_HtmlCell]] = []
        self.found_table = False
        self._table_depth = 0
        self._done = False
        self._row: Optional[List[_HtmlCell]] = None
        self._cell: Optional[_HtmlCell] = None

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if self._done:
            return
        tag = tag.lower()
        attributes: Dict[str, str] = {k.lower(): v for k, v in attrs if v is not None}

        if tag == "table":
            self._table_depth += 1
            self.found_table = True
            return
        if self._table_depth != 1 and self._cell is None:
            return

        if tag == "tr" and self._table_depth == 1:
            self._close_row()
            self._row = []
        elif tag in ("td", "th") and self._table_depth == 1:
            self._close_cell()
            if self._row is None:
                self._row = []
            self._cell = _HtmlCell(
                formula=attributes.get("data-sheets-formula") or None,
                hyperlink=attributes.get("data-sheets-hyperlink") or None,
            )
        elif self._cell is not None:
            if tag == "a" and self._cell.link_href is None:
                self._cell.link_href = attributes.get("href")
            elif tag == "img" and self._cell.img_src is None:
                self._cell.img_src = attributes.get("src")
            elif tag == "br":
                self._cell.text_parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if self._done:
            return
        tag = tag.lower()
        if tag == "table" and self._table_depth > 0:
            self._table_depth -= 1
            if self._table_depth == 0:
                self._close_row()
                self._done = True
        elif self._table_depth == 1:
            if tag in ("td", "th"):
                self._close_cell()
            elif tag == "tr":
                self._close_row()

    def handle_data(self, data: str) -> None:
        if self._cell is not None:
            self._cell.text_parts.append(data)

    def _close_cell(self) -> None:
        if self._cell is not None and self._row is not None:
            self._row.append(self._cell)
        self._cell = None

    def _close_row(self) -> None:
        self._close_cell()
        if self._row:
            self.rows.append(self._row)
        self._row = None


def convert_html_cell(cell: _HtmlCell) -> Cell:
    """Turn one clipboard cell into a Cell, normalizing image forms."""
    if cell.formula:
        formula = cell.formula if cell.formula.startswith("=") else "=" + cell.formula
        if "IMAGE(" in formula.upper():
            match = _IMAGE_CALL_RE.search(formula)
            url = match.group(1) if match else (cell.link_href or cell.img_src)
            if url:
                promoted = image_formula(url)
                return Cell(raw_value=promoted, formula=promoted)
            return Cell(raw_value=formula, formula=formula)
        return Cell(raw_value=cell.text, formula=formula)

    if cell.hyperlink:
        text = cell.text
        if _IMAGE_TEXT_RE.search(text) or "gyazo.com" in text:
            promoted = image_formula(cell.hyperlink)
            return Cell(raw_value=promoted, formula=promoted)
        return Cell(raw_value=cell.hyperlink)

    if cell.img_src and cell.img_src.startswith("http"):
        promoted = image_formula(cell.img_src)
        return Cell(raw_value=promoted, formula=promoted)

    return Cell(raw_value=cell.text)


class HtmlTableParser(WorkbookParser):
    """Parser for HTML clipboard content (first table only)."""

    supported_extensions: Tuple[str, ...] = ("html", "htm")

    def __init__(self, sheet_name: str = "Sheet1"):
        self.sheet_name = sheet_name

    def get_parser_name(self) -> str:
        """Return parser identifier."""
        return "html"

    def parse(self, content: ParserInput, source_label: str = "") -> Workbook:
        """Parse the first <table> of an HTML document.

        Raises:
            ParserError: If there is no table or it holds no cells
        """
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
        collector = TableCollector()
        collector.feed(text)
        collector.close()

        if not collector.found_table:
            raise ParserError("No table found in the pasted content", details={"source": source_label})
        if not collector.rows:
            raise ParserError("No data could be parsed from the table", details={"source": source_label})

        sheet = Sheet(self.sheet_name)
        for r, row in enumerate(collector.rows):
            for c, html_cell in enumerate(row):
                sheet.set_cell(r, c, convert_html_cell(html_cell))

        workbook = Workbook(title=source_label, source_label=source_label, loaded_via="html")
        workbook.add_sheet(self.sheet_name, sheet)
        logger.info("html_table_parsed", rows=len(collector.rows), cells=len(sheet))
        return workbook
