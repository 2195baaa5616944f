"""
Date Heuristic

Conservative conversion of spreadsheet date serials (days since 1899-12-30)
into display strings. A number is converted only when it passes the range
guard AND either its column header names a date/time or its number format
carries date tokens. Plain numeric metrics (likes, views, IDs) in the same
numeric range must stay numbers.
"""

from datetime import datetime, timedelta
import math
import re
from typing import Any, Optional

SERIAL_EPOCH = datetime(1899, 12, 30)
MIN_SERIAL = 1
MAX_SERIAL = 60000

DATE_FORMAT = "%Y/%m/%d"
DATETIME_FORMAT = "%Y/%m/%d %H:%M"

# Header keywords meaning date/time/created/updated/published (zh + en)
DATE_HEADER_RE = re.compile(
    r"日期|date|time|时间|创建|更新|发布|created|updated|published",
    re.IGNORECASE,
)

_DATE_FORMAT_TOKENS = ("yy", "mm", "dd")


def looks_like_date_serial(value: Any) -> bool:
    """Range guard: 1 <= v <= 60000 and v * 10000 is not a whole number.

    The fractional check keeps integers and short decimals (prices) out.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if not math.isfinite(value):
        return False
    if value < MIN_SERIAL or value > MAX_SERIAL:
        return False
    return not float(value * 10000).is_integer()


def is_date_header(header: Any) -> bool:
    if header is None:
        return False
    return bool(DATE_HEADER_RE.search(str(header)))


def has_date_format(number_format: Optional[str]) -> bool:
    if not number_format:
        return False
    fmt = number_format.lower()
    return any(token in fmt for token in _DATE_FORMAT_TOKENS)


def format_datetime(value: datetime) -> str:
    """Display form for a datetime: date only at midnight, else date and time."""
    if value.hour or value.minute or value.second or value.microsecond:
        return value.strftime(DATETIME_FORMAT)
    return value.strftime(DATE_FORMAT)


def serial_to_display(serial: float) -> str:
    """Convert a date serial to 'YYYY/MM/DD' or 'YYYY/MM/DD HH:MM'.

    The time part is shown whenever the serial has a fractional part.
    """
    seconds = round(serial * 86400)
    moment = SERIAL_EPOCH + timedelta(seconds=seconds)
    if serial % 1 != 0:
        return moment.strftime(DATETIME_FORMAT)
    return moment.strftime(DATE_FORMAT)


def convert_date_cell(
    value: Any,
    is_date_column: bool,
    number_format: Optional[str] = None,
) -> Optional[str]:
    """
    Return the display string for a date-serial cell, or None to keep the value.

    Args:
        value: Raw cell value
        is_date_column: Whether the column header matched a date keyword
        number_format: Stored number format of the cell, if known

    Returns:
        Display string when both guards pass, otherwise None
    """
    if not looks_like_date_serial(value):
        return None
    if not (is_date_column or has_date_format(number_format)):
        return None
    return serial_to_display(float(value))
