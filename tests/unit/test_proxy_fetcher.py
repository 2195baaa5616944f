"""Unit tests for direct-then-relay document and image fetching."""
from typing import Callable, Dict, List

import httpx
import pytest

from sheetmind.models.fetch_outcome import FailureKind
from sheetmind.services.image_urls import (
    is_likely_hotlink_blocked,
    normalize_image_url,
    strip_protocol,
)
from sheetmind.services.proxy_fetcher import ProxyFetcher, expand_template

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 200

Responder = Callable[[httpx.Request], httpx.Response]


class HostRouter:
    """MockTransport handler answering per host; records every request URL."""

    def __init__(self, routes: Dict[str, Responder]):
        self.routes = routes
        self.seen: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.seen.append(str(request.url))
        respond = self.routes.get(request.url.host)
        if respond is None:
            return httpx.Response(404)
        return respond(request)

    @property
    def hosts(self) -> List[str]:
        return [httpx.URL(u).host for u in self.seen]


def ok_text(body: str = "a,b\n1,2\n", content_type: str = "text/csv") -> Responder:
    return lambda request: httpx.Response(200, text=body, headers={"content-type": content_type})


def status(code: int) -> Responder:
    return lambda request: httpx.Response(code)


def image(content: bytes = PNG_BYTES, content_type: str = "image/png") -> Responder:
    return lambda request: httpx.Response(200, content=content, headers={"content-type": content_type})


def fetcher(settings, router: HostRouter) -> ProxyFetcher:
    return ProxyFetcher(settings, transport=httpx.MockTransport(router))


class TestExpandTemplate:
    def test_all_placeholders(self):
        url = "https://x.test/a b.png"
        assert expand_template("{url}", url) == "https%3A%2F%2Fx.test%2Fa%20b.png"
        assert expand_template("{raw_url}", url) == url
        assert expand_template("{stripped_url}", url) == "x.test%2Fa%20b.png"
        assert expand_template("{stripped_raw_url}", url) == "x.test/a b.png"


class TestFetchDocument:
    @pytest.mark.asyncio
    async def test_direct_success(self, settings):
        router = HostRouter({"data.test": ok_text()})

        outcome = await fetcher(settings, router).fetch_document("https://data.test/file.csv")

        assert outcome.ok
        assert outcome.strategy == "direct"
        assert outcome.value.content == b"a,b\n1,2\n"
        assert outcome.value.content_type.startswith("text/csv")
        assert router.hosts == ["data.test"]

    @pytest.mark.asyncio
    async def test_first_relay_after_direct_failure(self, settings):
        router = HostRouter({"data.test": status(403), "relay-one.test": ok_text()})

        outcome = await fetcher(settings, router).fetch_document("https://data.test/file.csv")

        assert outcome.strategy == "proxy"
        assert outcome.value.source_url.startswith("https://relay-one.test/")
        assert httpx.URL(outcome.value.source_url).params["url"] == "https://data.test/file.csv"

    @pytest.mark.asyncio
    async def test_relays_tried_in_order(self, settings):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        router = HostRouter({"data.test": refuse, "relay-one.test": status(500), "relay-two.test": ok_text()})

        outcome = await fetcher(settings, router).fetch_document("https://data.test/file.csv")

        assert outcome.ok
        assert router.hosts == ["data.test", "relay-one.test", "relay-two.test"]

    @pytest.mark.asyncio
    async def test_every_candidate_fails(self, settings):
        router = HostRouter({})

        outcome = await fetcher(settings, router).fetch_document("https://data.test/file.csv")

        assert not outcome.ok
        assert outcome.kind == FailureKind.NETWORK_ERROR
        assert "every relay failed" in outcome.message
        assert outcome.message.count("returned status: 404") == 3

    @pytest.mark.asyncio
    async def test_google_sheets_failure_message(self, settings):
        outcome = await fetcher(settings, HostRouter({})).fetch_document(
            "https://docs.google.com/spreadsheets/d/abc/export?format=csv"
        )

        assert "viewable by anyone with the link" in outcome.message


class TestFetchImage:
    @pytest.mark.asyncio
    async def test_direct_image(self, settings):
        router = HostRouter({"cdn.test": image()})

        outcome = await fetcher(settings, router).fetch_image("https://cdn.test/a.png")

        assert outcome.ok
        assert outcome.strategy == "direct"
        assert outcome.value.mime_type == "image/png"
        assert outcome.value.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_html_response_is_skipped(self, settings):
        router = HostRouter({
            "cdn.test": ok_text("<html>login</html>", "text/html; charset=utf-8"),
            "img-relay.test": image(),
        })

        outcome = await fetcher(settings, router).fetch_image("https://cdn.test/a.png")

        assert outcome.strategy == "proxy"
        assert router.hosts == ["cdn.test", "img-relay.test"]

    @pytest.mark.asyncio
    async def test_hotlink_blocked_domain_tries_relay_first(self, settings):
        router = HostRouter({"img-relay.test": image(content_type="image/jpeg")})

        outcome = await fetcher(settings, router).fetch_image("https://scontent.xx.fbcdn.net/v/p.jpg")

        assert outcome.ok
        assert router.hosts == ["img-relay.test"]
        assert httpx.URL(router.seen[0]).params["url"] == "scontent.xx.fbcdn.net/v/p.jpg"

    @pytest.mark.asyncio
    async def test_share_page_is_normalized_before_fetching(self, settings):
        router = HostRouter({"i.gyazo.com": image()})

        outcome = await fetcher(settings, router).fetch_image("https://gyazo.com/abc123")

        assert outcome.ok
        assert router.seen[0] == "https://i.gyazo.com/abc123.png"

    @pytest.mark.asyncio
    async def test_tiny_payloads_are_invalid_content(self, settings):
        router = HostRouter({"cdn.test": image(b"GIF89a"), "img-relay.test": image(b"x")})

        outcome = await fetcher(settings, router).fetch_image("https://cdn.test/a.gif")

        assert outcome.kind == FailureKind.INVALID_CONTENT
        assert "too small" in outcome.message

    @pytest.mark.asyncio
    async def test_mixed_failures_are_network_errors(self, settings):
        router = HostRouter({"cdn.test": status(404), "img-relay.test": ok_text("err", "text/plain")})

        outcome = await fetcher(settings, router).fetch_image("https://cdn.test/a.png")

        assert outcome.kind == FailureKind.NETWORK_ERROR
        assert "HTTP 404" in outcome.message
        assert "not an image" in outcome.message


class TestImageUrls:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://gyazo.com/0a1b2c3d", "https://i.gyazo.com/0a1b2c3d.png"),
            ("https://imgur.com/AbC12de", "https://i.imgur.com/AbC12de.jpg"),
            ("https://imgur.com/a/AbC12de", "https://imgur.com/a/AbC12de"),
            ("https://imgur.com/gallery/AbC12", "https://imgur.com/gallery/AbC12"),
            (
                "https://drive.google.com/file/d/1XyZ_-9/view?usp=sharing",
                "https://drive.google.com/uc?export=view&id=1XyZ_-9",
            ),
            ("https://drive.google.com/open?id=1XyZ", "https://drive.google.com/uc?export=view&id=1XyZ"),
            ("https://example.com/a.png", "https://example.com/a.png"),
        ],
    )
    def test_normalize_image_url(self, url, expected):
        assert normalize_image_url(url) == expected

    def test_hotlink_detection(self):
        assert is_likely_hotlink_blocked("https://scontent-nrt1-1.cdninstagram.com/x.jpg")
        assert not is_likely_hotlink_blocked("https://example.com/x.jpg")

    def test_strip_protocol(self):
        assert strip_protocol("HTTPS://x.test/a") == "x.test/a"
