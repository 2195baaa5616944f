"""Image URL normalization and hotlink-domain detection."""
import re
from urllib.parse import parse_qs, quote, urlsplit

_HTTP_PREFIX_RE = re.compile(r"^https?://", re.IGNORECASE)
_GYAZO_ID_RE = re.compile(r"^[a-f0-9]+$", re.IGNORECASE)
_IMGUR_ID_RE = re.compile(r"^[a-zA-Z0-9]{5,10}$")
_DRIVE_FILE_RE = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")

_HOTLINK_BLOCKED_RE = re.compile(
    r"fbcdn\.net|scontent\.|cdninstagram\.com|instagram\.com|fbsbx\.com|facebook\.com/.*/photos",
    re.IGNORECASE,
)

# imgur paths that are albums or galleries, not single images
_IMGUR_NON_IMAGE_PATHS = {"a", "gallery", "t"}


def strip_protocol(url: str) -> str:
    return _HTTP_PREFIX_RE.sub("", url)


def is_likely_hotlink_blocked(url: str) -> bool:
    """Domains that usually refuse direct hotlinking (Facebook/Instagram CDNs)."""
    return bool(_HOTLINK_BLOCKED_RE.search(url))


def normalize_image_url(url: str) -> str:
    """
    Rewrite image share-page links to direct image URLs.

    - https://gyazo.com/<hex id> -> https://i.gyazo.com/<id>.png
    - https://imgur.com/<id> -> https://i.imgur.com/<id>.jpg (albums untouched)
    - https://drive.google.com/file/d/<id>/view -> .../uc?export=view&id=<id>

    Anything else, including unparseable input, is returned unchanged.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    host = (parts.hostname or "").lower()
    segments = [s for s in parts.path.split("/") if s]

    if host == "gyazo.com" and segments:
        gyazo_id = segments[0]
        if _GYAZO_ID_RE.match(gyazo_id):
            return f"https://i.gyazo.com/{gyazo_id}.png"

    if host in ("imgur.com", "www.imgur.com") and segments:
        imgur_id = segments[0]
        if imgur_id not in _IMGUR_NON_IMAGE_PATHS and _IMGUR_ID_RE.match(imgur_id):
            return f"https://i.imgur.com/{imgur_id}.jpg"

    if "drive.google.com" in host:
        match = _DRIVE_FILE_RE.search(parts.path)
        if match:
            return f"https://drive.google.com/uc?export=view&id={match.group(1)}"
        ids = parse_qs(parts.query).get("id")
        if ids and ids[0]:
            return f"https://drive.google.com/uc?export=view&id={quote(ids[0], safe='')}"

    return url
