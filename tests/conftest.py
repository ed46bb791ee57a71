"""Shared pytest fixtures for siteaudit tests."""

import sys
import time
from pathlib import Path
from urllib.parse import urlparse
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is on sys.path so 'siteaudit' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from siteaudit.exceptions import FetchError  # noqa: E402
from siteaudit.models.crawl import CrawledPage, Heading, Link  # noqa: E402
from siteaudit.modules.technical_audit.fetcher import FetchResponse  # noqa: E402

CLEAN_TITLE = "Trail Running Shoes Buying Guide for Beginners"  # 46 chars
CLEAN_DESCRIPTION = (
    "Everything you need to pick your first pair of trail running shoes: "
    "grip, drop, cushioning and fit explained."
)
# Enough internal links per page to keep the site-wide linking rule quiet.
NAV_LINKS = (
    Link("https://example.com/nav-shop", True, "Shop"),
    Link("https://example.com/nav-blog", True, "Blog"),
    Link("https://example.com/nav-help", True, "Help"),
)


def html_page(
    title: str = "Test Page",
    body: str = "",
    links: tuple = (),
    head: str = "",
) -> str:
    """Build a small HTML document with ``links`` as ``(href, text)`` pairs."""
    anchors = "".join(f'<a href="{href}">{text}</a>' for href, text in links)
    title_tag = f"<title>{title}</title>" if title else ""
    return (
        f"<!DOCTYPE html><html lang=\"en\"><head>{title_tag}{head}</head>"
        f"<body>{body}{anchors}</body></html>"
    )


@pytest.fixture()
def make_page():
    """Factory for a CrawledPage that triggers no audit rule unless overridden."""

    def _make(url: str = "https://example.com/", **overrides) -> CrawledPage:
        # Unique per URL so multi-page sites do not trip the duplicate rules.
        suffix = urlparse(url).path.strip("/") or "home"
        fields = dict(
            url=url,
            status_code=200,
            title=f"{CLEAN_TITLE} - {suffix}"[:60],
            meta_description=f"{CLEAN_DESCRIPTION} ({suffix})"[:160],
            h1=("Trail Running Shoes",),
            headings=(Heading(1, "Trail Running Shoes"), Heading(2, "Choosing grip")),
            images=(),
            links=NAV_LINKS,
            schema_types=("WebPage",),
            word_count=800,
            load_time_ms=120,
            canonical_url=url,
            robots_directive=None,
            html_size=20_000,
            depth=0,
            og_tags=(
                ("og:description", CLEAN_DESCRIPTION),
                ("og:image", "https://example.com/img/share.jpg"),
                ("og:title", CLEAN_TITLE),
            ),
        )
        fields.update(overrides)
        return CrawledPage(**fields)

    return _make


class FakeSite:
    """In-memory site served through a mocked ``PageFetcher``.

    ``routes`` maps URL -> HTML string, ``(status, body)``,
    ``(status, body, content_type)``, ``(status, body, content_type, final_url)``
    or an Exception instance to raise. Unknown URLs return 404.
    """

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.calls: list[tuple[str, float]] = []
        self.fetcher = MagicMock()
        self.fetcher.fetch = AsyncMock(side_effect=self._fetch)
        self.fetcher.close = AsyncMock()

    async def _fetch(self, url: str, accept: str = "") -> FetchResponse:
        self.calls.append((url, time.monotonic()))
        route = self.routes.get(url)
        if route is None:
            return FetchResponse(url, url, 404, "text/html", "", 1)
        if isinstance(route, Exception):
            if isinstance(route, FetchError):
                raise route
            raise FetchError(url, str(route))
        if isinstance(route, str):
            route = (200, route)
        status, body = route[0], route[1]
        content_type = route[2] if len(route) > 2 else "text/html; charset=utf-8"
        final_url = route[3] if len(route) > 3 else url
        return FetchResponse(url, final_url, status, content_type, body, 5)

    def fetched_urls(self) -> list[str]:
        return [url for url, _ in self.calls]

    def page_fetches(self) -> list[str]:
        """Fetched URLs excluding robots.txt and sitemap discovery."""
        return [
            url for url in self.fetched_urls()
            if not url.endswith("/robots.txt") and "sitemap" not in url
        ]


@pytest.fixture()
def fake_site():
    """Return a factory building a :class:`FakeSite` from a routes dict."""
    return FakeSite
