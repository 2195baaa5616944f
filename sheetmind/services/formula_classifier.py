"""
Formula Classifier

Decides whether a formula or raw cell string denotes an embeddable image and
returns the image URL. A cell's displayed value and its formula diverge for
image cells (the computed value is blank or a number), so callers use this to
put the formula text back into the value slot.
"""

import re
from typing import Any, List, Optional, Pattern, Tuple

# Image file extensions, optionally followed by a query string
IMAGE_EXTENSION_RE = re.compile(r"\.(png|jpg|jpeg|gif|webp|svg|bmp)(\?.*)?$", re.IGNORECASE)

_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)
_IMAGE_HOST_RE = re.compile(
    r"googleusercontent\.com|drive\.google\.com"
    r"|gyazo\.com|imgur\.com|imgbb\.com|cloudinary\.com|unsplash\.com"
    r"|pexels\.com|flickr\.com|pinterest\.com|instagram\.com",
    re.IGNORECASE,
)
_BARE_IMAGE_URL_RE = re.compile(
    r"^https?://.*\.(png|jpg|jpeg|gif|webp|svg|bmp)(\?.*)?$", re.IGNORECASE
)

# (pattern, requires image-looking URL). Order is priority order.
_FORMULA_RULES: List[Tuple[Pattern[str], bool]] = [
    (re.compile(r'^=IMAGE\s*\(\s*"([^"]+)"', re.IGNORECASE), False),
    (re.compile(r"^=IMAGE\s*\(\s*'([^']+)'", re.IGNORECASE), False),
    (re.compile(r"^=IMAGE\s*\(\s*(https?://[^,\s)]+)", re.IGNORECASE), False),
    (re.compile(r'^=IMAGE\s*\(\s*HYPERLINK\s*\(\s*"([^"]+)"', re.IGNORECASE), False),
    (re.compile(r"^=IMAGE\s*\(\s*HYPERLINK\s*\(\s*'([^']+)'", re.IGNORECASE), False),
    (re.compile(r'^=HYPERLINK\s*\(\s*"([^"]+)"', re.IGNORECASE), True),
    (re.compile(r"^=HYPERLINK\s*\(\s*'([^']+)'", re.IGNORECASE), True),
]

_PROMOTABLE_PREFIX_RE = re.compile(r"^=(IMAGE|HYPERLINK)\s*\(", re.IGNORECASE)


def is_likely_image_url(url: str) -> bool:
    """Heuristic: http(s) URL with an image extension or on a known image host."""
    if not _HTTP_RE.match(url):
        return False
    if IMAGE_EXTENSION_RE.search(url):
        return True
    return bool(_IMAGE_HOST_RE.search(url))


def extract_image_url(value: Any) -> Optional[str]:
    """
    Return the image URL embedded in a formula or raw string, or None.

    Rules in priority order (first match wins):
    =IMAGE("url") or =IMAGE('url'), =IMAGE(url) unquoted,
    =IMAGE(HYPERLINK("url", ...)), =HYPERLINK("url", ...) when the URL looks
    like an image, and finally a bare http(s) URL ending in an image extension.

    Args:
        value: Cell value or formula text; non-strings return None

    Returns:
        The URL exactly as written, or None
    """
    if not isinstance(value, str):
        return None

    text = value.strip()
    for pattern, needs_image_url in _FORMULA_RULES:
        match = pattern.match(text)
        if match is None:
            continue
        url = match.group(1)
        if needs_image_url and not is_likely_image_url(url):
            continue
        return url

    if _BARE_IMAGE_URL_RE.match(text):
        return text
    return None


def is_image_formula(value: Any) -> bool:
    """True for =IMAGE(...) / =HYPERLINK(...) formulas that carry an image URL."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    return bool(_PROMOTABLE_PREFIX_RE.match(text)) and extract_image_url(text) is not None
