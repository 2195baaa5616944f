"""Parsing of pasted image references (formula lines, bare URLs, HTML <img> tags)."""
from dataclasses import dataclass
import html
from html.parser import HTMLParser
import re
from typing import List, Literal, Optional, Tuple

from sheetmind.services.image_urls import normalize_image_url

PastedKind = Literal["formula", "url"]

_PASTED_FORMULA_RE = re.compile(r"""=IMAGE\s*\(\s*["']([^"']+)["']\s*\)""", re.IGNORECASE)
_PASTED_URL_RE = re.compile(r"https?://\S+")


@dataclass(frozen=True)
class PastedImage:
    """One image reference found in pasted text.

    `content` is the original line (kept so a formula can be written back
    unchanged); `url` is the normalized URL to fetch.
    """

    kind: PastedKind
    content: str
    url: str


@dataclass(frozen=True)
class HtmlImageUrl:
    original_url: str
    fetch_url: str


def parse_paste_input(text: str) -> List[PastedImage]:
    """
    Extract image references from pasted text, one per non-blank line.

    A line containing =IMAGE("url") yields a 'formula' entry; otherwise the
    first http(s) URL on the line yields a 'url' entry. Other lines are skipped.
    HTML entities in URLs (e.g. &amp;) are decoded before normalization.
    """
    results: List[PastedImage] = []
    for line in re.split(r"\r?\n", text or ""):
        trimmed = line.strip()
        if not trimmed:
            continue

        formula_match = _PASTED_FORMULA_RE.search(trimmed)
        if formula_match:
            raw_url = html.unescape(formula_match.group(1))
            results.append(PastedImage("formula", trimmed, normalize_image_url(raw_url)))
            continue

        url_match = _PASTED_URL_RE.search(trimmed)
        if url_match:
            raw_url = html.unescape(url_match.group(0))
            results.append(PastedImage("url", trimmed, normalize_image_url(raw_url)))
    return results


class _ImageSrcCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.sources: List[str] = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag.lower() != "img":
            return
        for name, value in attrs:
            if name.lower() == "src" and value:
                self.sources.append(value)
                break


def extract_image_urls_from_html(content: str) -> List[HtmlImageUrl]:
    """Return every <img src> in document order with its normalized fetch URL."""
    collector = _ImageSrcCollector()
    collector.feed(content or "")
    collector.close()
    return [HtmlImageUrl(src, normalize_image_url(src)) for src in collector.sources]
