"""Breadth-first site crawler.

Discovery (robots.txt, sitemaps) seeds a FIFO frontier; each frontier item
is checked against depth and robots policy, fetched through the per-origin
politeness gate, extracted, and expanded with its internal links.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from siteaudit.exceptions import FetchError
from siteaudit.models.crawl import (
    CrawlConfig,
    CrawledPage,
    CrawlError,
    CrawlProgress,
    CrawlResult,
    CrawlStatus,
    UrlState,
)
from siteaudit.modules.technical_audit.extractor import PageExtractor
from siteaudit.modules.technical_audit.fetcher import HTML_ACCEPT, FetchResponse, PageFetcher
from siteaudit.modules.technical_audit.robots import RobotsPolicy
from siteaudit.modules.technical_audit.sitemap import SitemapParser
from siteaudit.utils.helpers import utc_now_iso
from siteaudit.utils.rate_limiter import PolitenessGate
from siteaudit.utils.url_utils import canonicalize_url, is_same_site, origin_of

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlProgress], None]


# ---------------------------------------------------------------------------
# Crawl state
# ---------------------------------------------------------------------------

@dataclass
class CrawlState:
    """Everything the frontier loop mutates, owned by a single crawl run."""

    root_url: str
    queue: deque = field(default_factory=deque)
    seen: set[str] = field(default_factory=set)
    page_urls: set[str] = field(default_factory=set)
    pages: list[CrawledPage] = field(default_factory=list)
    errors: list[CrawlError] = field(default_factory=list)
    status: CrawlStatus = CrawlStatus.IDLE
    sitemap_urls: int = 0
    robots_found: bool = False
    started: Optional[float] = None

    @property
    def crawled_pages(self) -> int:
        return len(self.pages)

    @property
    def total_pages(self) -> int:
        return len(self.seen)

    def enqueue(self, url: str, depth: int) -> bool:
        """Queue canonical *url* unless it was already discovered."""
        if url in self.seen:
            return False
        self.seen.add(url)
        self.queue.append((url, depth))
        return True

    def progress(self, current_url: str, state: UrlState) -> CrawlProgress:
        return CrawlProgress(
            current_url=current_url,
            state=state,
            crawled_pages=self.crawled_pages,
            errors=len(self.errors),
            total_pages=self.total_pages,
            queued=len(self.queue),
        )


class _CrawlCancelled(Exception):
    """Raised inside the crawl when the cancel event is set before a fetch starts."""


class _PoliteFetcher:
    """Route every fetch through the politeness gate of its origin."""

    def __init__(
        self,
        fetcher: PageFetcher,
        gate: PolitenessGate,
        on_start: Callable[[], None],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        self._fetcher = fetcher
        self._gate = gate
        self._on_start = on_start
        self._cancel_event = cancel_event

    async def fetch(self, url: str, accept: str = HTML_ACCEPT) -> FetchResponse:
        async with self._gate.slot(origin_of(url), self._cancel_event) as slot:
            if not slot.acquired:
                raise _CrawlCancelled(url)
            self._on_start()
            return await self._fetcher.fetch(url, accept=accept)


# ---------------------------------------------------------------------------
# SiteCrawler
# ---------------------------------------------------------------------------

class SiteCrawler:
    """Crawl one site under a :class:`CrawlConfig`."""

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        fetcher: Optional[PageFetcher] = None,
        extractor: Optional[PageExtractor] = None,
    ) -> None:
        self.config = config or CrawlConfig()
        self._fetcher = fetcher
        self._extractor = extractor

    async def crawl(
        self,
        root_url: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        """Crawl *root_url* and return an immutable :class:`CrawlResult`.

        Raises :class:`CrawlConfigError` before any network activity if the
        root URL or the budgets are invalid. Per-URL failures never raise.
        """
        config = self.config
        config.validate()
        config.validate_root_url(root_url)

        root = canonicalize_url(root_url)
        state = CrawlState(root_url=root)
        started_at = utc_now_iso()
        extractor = self._extractor or PageExtractor(root)

        fetcher = self._fetcher
        owns_fetcher = fetcher is None
        if fetcher is None:
            fetcher = PageFetcher(
                user_agent=config.user_agent,
                timeout_s=config.timeout_s,
                max_redirects=config.max_redirects,
                max_body_bytes=config.max_body_bytes,
            )

        gate = PolitenessGate(delay_ms=config.delay_ms)

        def mark_started() -> None:
            if state.started is None:
                state.started = time.monotonic()

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        polite = _PoliteFetcher(fetcher, gate, mark_started, cancel_event)
        state.status = CrawlStatus.RUNNING
        logger.info("Starting crawl of %s (max_pages=%d, max_depth=%d)", root, config.max_pages, config.max_depth)

        try:
            robots = await RobotsPolicy.load(polite, root, config.user_agent, config.delay_ms)
            state.robots_found = robots.found
            if config.respect_robots_txt:
                gate.set_delay_ms(max(config.delay_ms, robots.crawl_delay_ms()))

            state.enqueue(root, 0)
            if config.use_sitemap:
                for url in await SitemapParser(polite).discover(root, robots.sitemaps):
                    if not is_same_site(url, root):
                        continue
                    if state.enqueue(canonicalize_url(url), 1):
                        state.sitemap_urls += 1

            await self._run(state, polite, extractor, robots, on_progress, cancelled)
        except _CrawlCancelled as exc:
            logger.info("Crawl cancelled before fetching %s", exc)
            state.status = CrawlStatus.ABORTED
        finally:
            if owns_fetcher:
                await fetcher.close()

        if state.status == CrawlStatus.RUNNING:
            state.status = CrawlStatus.COMPLETED
        duration_ms = int(round((time.monotonic() - state.started) * 1000)) if state.started else 0

        logger.info(
            "Crawl %s: %d pages, %d errors, %d discovered in %dms",
            state.status.value, state.crawled_pages, len(state.errors), state.total_pages, duration_ms,
        )
        return CrawlResult(
            root_url=root,
            pages=tuple(state.pages),
            total_pages=state.total_pages,
            crawled_pages=state.crawled_pages,
            errors=tuple(state.errors),
            duration_ms=duration_ms,
            status=state.status,
            started_at=started_at,
            completed_at=utc_now_iso(),
            sitemap_urls=state.sitemap_urls,
            robots_found=state.robots_found,
        )

    # ------------------------------------------------------------------
    # Frontier loop
    # ------------------------------------------------------------------

    async def _run(
        self,
        state: CrawlState,
        fetcher: _PoliteFetcher,
        extractor: PageExtractor,
        robots: RobotsPolicy,
        on_progress: Optional[ProgressCallback],
        cancelled: Callable[[], bool],
    ) -> None:
        config = self.config

        def report(url: str, url_state: UrlState) -> None:
            if on_progress is not None:
                on_progress(state.progress(url, url_state))

        while state.queue:
            if cancelled():
                state.status = CrawlStatus.ABORTED
                logger.info("Crawl cancelled with %d URLs still queued", len(state.queue))
                return
            if state.crawled_pages >= config.max_pages:
                logger.info("Reached max_pages=%d", config.max_pages)
                return

            url, depth = state.queue.popleft()

            if depth > config.max_depth:
                logger.debug("Skipping %s: depth %d exceeds max_depth", url, depth)
                report(url, UrlState.SKIPPED)
                continue
            if config.respect_robots_txt and not robots.is_allowed(url):
                logger.debug("Skipping disallowed URL: %s", url)
                report(url, UrlState.SKIPPED)
                continue
            if url in state.page_urls:
                logger.debug("Skipping %s: already crawled via redirect", url)
                report(url, UrlState.SKIPPED)
                continue
            if cancelled():
                state.status = CrawlStatus.ABORTED
                return

            report(url, UrlState.FETCHING)
            try:
                response = await fetcher.fetch(url)
            except FetchError as exc:
                logger.warning("Error fetching %s: %s", url, exc.reason)
                state.errors.append(CrawlError(url=url, reason=exc.reason, status_code=exc.status_code))
                report(url, UrlState.FAILED)
                continue

            if not response.ok:
                logger.info("HTTP %d for %s", response.status_code, url)
                state.errors.append(CrawlError(
                    url=url, reason=f"HTTP {response.status_code}", status_code=response.status_code,
                ))
                report(url, UrlState.FAILED)
                continue
            if not response.is_html:
                logger.debug("Skipping non-HTML %s (%s)", url, response.content_type)
                report(url, UrlState.SKIPPED)
                continue

            final_url = canonicalize_url(response.final_url)
            if final_url in state.page_urls:
                logger.debug("Skipping %s: redirected to already crawled %s", url, final_url)
                report(url, UrlState.SKIPPED)
                continue
            state.seen.add(final_url)

            page = extractor.extract(
                response.text,
                final_url,
                status_code=response.status_code,
                load_time_ms=response.load_time_ms,
                depth=depth,
                content_type=response.content_type or "text/html",
            )
            state.pages.append(page)
            state.page_urls.add(page.url)
            logger.info(
                "[%d/%d] Crawled %s (status=%d depth=%d)",
                state.crawled_pages, config.max_pages, page.url, page.status_code, depth,
            )

            for link in page.internal_links:
                if state.enqueue(link.href, depth + 1):
                    report(link.href, UrlState.QUEUED)
            report(page.url, UrlState.FETCHED)


async def crawl(
    root_url: str,
    config: Optional[CrawlConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    fetcher: Optional[PageFetcher] = None,
) -> CrawlResult:
    """Crawl *root_url* with a fresh :class:`SiteCrawler`."""
    crawler = SiteCrawler(config, fetcher=fetcher)
    return await crawler.crawl(root_url, on_progress=on_progress, cancel_event=cancel_event)
