"""XML sitemap discovery and parsing (urlset and sitemapindex)."""

import logging
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from siteaudit.exceptions import FetchError
from siteaudit.modules.technical_audit.fetcher import XML_ACCEPT, PageFetcher
from siteaudit.utils.url_utils import origin_of

logger = logging.getLogger(__name__)

MAX_SITEMAP_DEPTH = 3
MAX_SITEMAP_URLS = 50_000


def _local(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


@dataclass
class ParsedSitemap:
    """Result of parsing one sitemap document."""

    kind: str = "unknown"  # "urlset", "sitemapindex" or "unknown"
    urls: list[str] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)


def parse_sitemap_xml(text: str) -> ParsedSitemap:
    """Parse a sitemap document without regard to XML namespaces.

    Malformed XML yields an empty ``unknown`` result.
    """
    result = ParsedSitemap()
    try:
        root = ET.fromstring(text.strip().encode("utf-8"))
    except ET.ParseError as exc:
        logger.warning("Sitemap XML parse error: %s", exc)
        return result

    kind = _local(root.tag)
    if kind == "sitemapindex":
        result.kind = kind
        for sm_el in root:
            if _local(sm_el.tag) != "sitemap":
                continue
            for child in sm_el:
                if _local(child.tag) == "loc" and child.text and child.text.strip():
                    result.sitemaps.append(child.text.strip())
    elif kind == "urlset":
        result.kind = kind
        for url_el in root:
            if _local(url_el.tag) != "url":
                continue
            for child in url_el:
                if _local(child.tag) == "loc" and child.text and child.text.strip():
                    result.urls.append(child.text.strip())
    return result


class SitemapParser:
    """Discover page URLs from a site's XML sitemaps.

    Sources are tried in order: ``/sitemap.xml``, ``/sitemap_index.xml``,
    then any ``Sitemap:`` entries from robots.txt. The first source that
    yields URLs wins. Failures of any kind contribute nothing.
    """

    def __init__(self, fetcher: PageFetcher, max_depth: int = MAX_SITEMAP_DEPTH) -> None:
        self._fetcher = fetcher
        self._max_depth = max_depth

    async def discover(self, base_url: str, robots_sitemaps: tuple[str, ...] = ()) -> list[str]:
        origin = origin_of(base_url)
        candidates = [
            [f"{origin}/sitemap.xml"],
            [f"{origin}/sitemap_index.xml"],
            list(robots_sitemaps),
        ]
        visited: set[str] = set()
        for source in candidates:
            urls: list[str] = []
            for sitemap_url in source:
                await self._collect(sitemap_url, urls, visited, depth=0)
            if urls:
                deduped = list(dict.fromkeys(urls))
                logger.info("Sitemap: %d URLs from %s", len(deduped), ", ".join(source))
                return deduped
        logger.info("Sitemap: no URLs found for %s", origin)
        return []

    async def _collect(self, url: str, urls: list[str], visited: set[str], depth: int) -> None:
        """Fetch *url* and append its page URLs, expanding indexes recursively."""
        if depth > self._max_depth or url in visited or len(urls) >= MAX_SITEMAP_URLS:
            return
        visited.add(url)
        try:
            response = await self._fetcher.fetch(url, accept=XML_ACCEPT)
        except FetchError as exc:
            logger.debug("Error fetching sitemap %s: %s", url, exc.reason)
            return
        if response.status_code != 200:
            logger.debug("Sitemap %s returned status %d", url, response.status_code)
            return

        parsed = parse_sitemap_xml(response.text)
        if parsed.kind == "sitemapindex":
            for child_url in parsed.sitemaps:
                await self._collect(child_url, urls, visited, depth + 1)
        else:
            room = MAX_SITEMAP_URLS - len(urls)
            urls.extend(parsed.urls[:room])
