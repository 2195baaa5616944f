"""Unit tests for image formula classification."""
import pytest

from sheetmind.services.formula_classifier import (
    extract_image_url,
    is_image_formula,
    is_likely_image_url,
)


class TestExtractImageUrl:
    """Each rule extracts exactly the embedded URL."""

    @pytest.mark.parametrize(
        "formula, expected",
        [
            ('=IMAGE("https://example.com/cat.png")', "https://example.com/cat.png"),
            ("=IMAGE('https://example.com/cat.png')", "https://example.com/cat.png"),
            ('=image( "https://example.com/a.jpg", 4, 100, 100)', "https://example.com/a.jpg"),
            ("=IMAGE(https://example.com/dog.jpg)", "https://example.com/dog.jpg"),
            ("=IMAGE(https://example.com/dog.jpg, 2)", "https://example.com/dog.jpg"),
            (
                '=IMAGE(HYPERLINK("https://cdn.example.com/x.webp", "x"))',
                "https://cdn.example.com/x.webp",
            ),
            (
                "=IMAGE(HYPERLINK('https://cdn.example.com/x.webp', 'x'))",
                "https://cdn.example.com/x.webp",
            ),
            ('=HYPERLINK("https://example.com/photo.jpeg?size=l", "see")', "https://example.com/photo.jpeg?size=l"),
            ('=HYPERLINK("https://i.imgur.com/abc", "img")', "https://i.imgur.com/abc"),
            ('=HYPERLINK("https://lh3.googleusercontent.com/xyz")', "https://lh3.googleusercontent.com/xyz"),
            ("https://example.com/pic.GIF", "https://example.com/pic.GIF"),
            ("  https://example.com/pic.svg?v=2  ", "https://example.com/pic.svg?v=2"),
        ],
    )
    def test_extracts_embedded_url(self, formula, expected):
        """Verify the URL and nothing else is returned."""
        assert extract_image_url(formula) == expected

    @pytest.mark.parametrize(
        "value",
        [
            "=SUM(A1:A3)",
            '=HYPERLINK("https://example.com/docs/page", "docs")',
            "https://example.com/page.html",
            "plain text",
            "",
            '=VLOOKUP("https://example.com/a.png", A:B, 2)',
        ],
    )
    def test_non_image_values_return_none(self, value):
        """Verify arbitrary formulas and links are not classified as images."""
        assert extract_image_url(value) is None

    @pytest.mark.parametrize("value", [None, 42, 3.5, True])
    def test_non_strings_return_none(self, value):
        assert extract_image_url(value) is None

    def test_nested_hyperlink_is_not_read_as_unquoted_image(self):
        """=IMAGE(HYPERLINK(...)) must resolve to the inner URL only."""
        formula = '=IMAGE(HYPERLINK("https://a.test/1.png","label"))'
        assert extract_image_url(formula) == "https://a.test/1.png"


class TestIsLikelyImageUrl:
    """Heuristic used for HYPERLINK formulas."""

    def test_extension_match(self):
        assert is_likely_image_url("https://x.test/a.bmp")

    def test_known_host_match(self):
        assert is_likely_image_url("https://gyazo.com/abc123")

    def test_requires_http_scheme(self):
        assert not is_likely_image_url("ftp://x.test/a.png")

    def test_plain_page_rejected(self):
        assert not is_likely_image_url("https://example.com/about")


class TestIsImageFormula:
    """Only IMAGE/HYPERLINK formulas with an image URL are promoted."""

    def test_image_formula(self):
        assert is_image_formula('=IMAGE("https://x.test/a.png")')

    def test_image_hyperlink(self):
        assert is_image_formula('=HYPERLINK("https://x.test/a.png", "pic")')

    def test_bare_url_is_not_a_formula(self):
        assert not is_image_formula("https://x.test/a.png")

    def test_non_image_hyperlink(self):
        assert not is_image_formula('=HYPERLINK("https://x.test/page", "page")')

    def test_other_formula(self):
        assert not is_image_formula("=A1*2")
