"""Helpers for Google Sheets URLs."""
import re
from typing import Optional

_SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")
_GID_RE = re.compile(r"[?&#]gid=(\d+)")


def extract_spreadsheet_id(url: str) -> Optional[str]:
    """Return the spreadsheet ID from a '/spreadsheets/d/<id>' URL, or None."""
    match = _SPREADSHEET_ID_RE.search(url or "")
    return match.group(1) if match else None


def extract_gid(url: str) -> Optional[int]:
    """Return the numeric gid (sheet tab) qualifier of a URL, or None."""
    match = _GID_RE.search(url or "")
    return int(match.group(1)) if match else None


def is_google_sheets_url(url: str) -> bool:
    return "docs.google.com/spreadsheets" in (url or "") and extract_spreadsheet_id(url) is not None
