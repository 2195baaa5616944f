"""Command line entry point: load a spreadsheet source and print a table summary.

Usage:
    sheetmind "https://docs.google.com/spreadsheets/d/abc123/edit#gid=0"
    sheetmind prices.xlsx --sheet Products --sheet Archive --merge --json
"""
import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from sheetmind.config import configure_logging, get_settings
from sheetmind.errors.exceptions import IngestionError
from sheetmind.models.table import Table
from sheetmind.models.workbook import Workbook, sanitize_sheet_name
from sheetmind.services.ingestion_service import IngestionService, google_sheets_source
from sheetmind.utils.sheets_url import is_google_sheets_url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetmind",
        description="Load a Google Sheet, workbook file or CSV and normalize it into a table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Public or shared Google Sheet
  sheetmind "https://docs.google.com/spreadsheets/d/abc123/edit"

  # Private Google Sheet with an OAuth access token
  sheetmind "https://docs.google.com/spreadsheets/d/abc123/edit" --token ya29.xxx

  # Merge two tabs of a local workbook
  sheetmind report.xlsx --sheet Jan --sheet Feb --merge
        """,
    )
    parser.add_argument("source", help="Google Sheets URL, other URL, or local file path")
    parser.add_argument("--token", help="OAuth access token for private sheets")
    parser.add_argument(
        "--sheet",
        action="append",
        dest="sheets",
        help="Sheet to load (repeatable; default: all sheets)",
    )
    parser.add_argument("--merge", action="store_true", help="Merge the selected sheets into one table")
    parser.add_argument("--chunked", action="store_true", help="Build tables with the chunked async builder")
    parser.add_argument("--json", action="store_true", help="Print the full table as JSON")
    return parser


def summarize(workbook: Workbook, table: Table, include_rows: bool) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "title": workbook.title,
        "loaded_via": workbook.loaded_via,
        "sheets": list(workbook.sheet_names),
        "sheet_errors": dict(workbook.sheet_errors),
        "cross_references": [ref.model_dump() for ref in workbook.cross_references],
        "table": {
            "source_label": table.source_label,
            "sheet_name": table.sheet_name,
            "columns": table.columns,
            "row_count": table.row_count,
        },
    }
    if include_rows:
        summary["table"]["rows"] = table.rows
    return summary


async def run(args: argparse.Namespace, service: Optional[IngestionService] = None) -> int:
    service = service or IngestionService(get_settings())
    source: str = args.source
    gid: Optional[int] = None

    def on_progress(message: str, percent: int) -> None:
        print(f"[{percent:3d}%] {message}", file=sys.stderr)

    if not source.startswith(("http://", "https://")):
        workbook = service.load_file(source)
    else:
        if is_google_sheets_url(source) or "docs.google.com/spreadsheets" in source:
            sheets_source = google_sheets_source(source, access_token=args.token, sheet_names=args.sheets)
            outcome = await service.load_google_sheet(sheets_source, on_progress=on_progress)
            gid = sheets_source.gid
        else:
            outcome = await service.load_url(
                source, access_token=args.token, sheet_names=args.sheets, on_progress=on_progress
            )
        if not outcome.ok:
            print(outcome.message, file=sys.stderr)
            return 2
        workbook = outcome.value

    # Loaded sheets carry sanitized names
    wanted = {sanitize_sheet_name(name) for name in args.sheets or []}
    selected: List[str] = [n for n in workbook.sheet_names if not wanted or n in wanted]
    if args.merge:
        if args.chunked:
            table = await service.build_merged_table_async(workbook, selected)
        else:
            table = service.build_merged_table(workbook, selected)
    else:
        sheet_name = selected[0] if args.sheets and selected else service.select_default_sheet(workbook, gid)
        if args.chunked:
            table = await service.build_table_async(workbook, sheet_name)
        else:
            table = service.build_table(workbook, sheet_name)

    print(json.dumps(summarize(workbook, table, args.json), ensure_ascii=False, indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.is_production)
    try:
        return asyncio.run(run(args))
    except IngestionError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
