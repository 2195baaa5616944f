"""Parser modules for local workbook sources."""
from sheetmind.parsers.base_parser import WorkbookParser
from sheetmind.parsers.parser_registry import (
    register_parser,
    get_parser,
    create_parser_instance,
    parser_for_filename,
    list_registered_parsers,
)
from sheetmind.parsers.excel_parser import ExcelParser
from sheetmind.parsers.csv_parser import CsvParser
from sheetmind.parsers.html_parser import HtmlTableParser
from sheetmind.parsers.paste_parser import (
    HtmlImageUrl,
    PastedImage,
    extract_image_urls_from_html,
    parse_paste_input,
)

# Register parsers
register_parser("xlsx", ExcelParser)
register_parser("csv", CsvParser)
register_parser("html", HtmlTableParser)

__all__ = [
    "WorkbookParser",
    "register_parser",
    "get_parser",
    "create_parser_instance",
    "parser_for_filename",
    "list_registered_parsers",
    "ExcelParser",
    "CsvParser",
    "HtmlTableParser",
    "PastedImage",
    "HtmlImageUrl",
    "parse_paste_input",
    "extract_image_urls_from_html",
]
