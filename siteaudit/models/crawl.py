"""Crawl-side data model: configuration, extracted pages and crawl results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from siteaudit.exceptions import CrawlConfigError
from siteaudit.utils.helpers import MAPPING_FIELD, make_serialisable
from siteaudit.utils.validators import validate_url

DEFAULT_USER_AGENT = "SiteAuditBot/1.0 (+https://github.com/siteaudit/siteaudit)"


@dataclass(frozen=True)
class CrawlConfig:
    """Budgets and politeness settings for a single crawl."""

    max_pages: int = 100
    max_depth: int = 5
    delay_ms: int = 500
    respect_robots_txt: bool = True
    timeout_s: float = 10.0
    max_redirects: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    use_sitemap: bool = True
    max_body_bytes: int = 5 * 1024 * 1024

    def validate(self) -> None:
        """Raise :class:`CrawlConfigError` if any budget is unusable."""
        if self.max_pages <= 0:
            raise CrawlConfigError(f"max_pages must be positive, got {self.max_pages}")
        if self.max_depth < 0:
            raise CrawlConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.delay_ms < 0:
            raise CrawlConfigError(f"delay_ms must be >= 0, got {self.delay_ms}")
        if self.timeout_s <= 0:
            raise CrawlConfigError(f"timeout_s must be positive, got {self.timeout_s}")
        if self.max_redirects < 0:
            raise CrawlConfigError(f"max_redirects must be >= 0, got {self.max_redirects}")

    def validate_root_url(self, root_url: str) -> None:
        ok, error = validate_url(root_url)
        if not ok:
            raise CrawlConfigError(f"Invalid root URL {root_url!r}: {error}")


class CrawlStatus(str, Enum):
    """Global crawl lifecycle."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class UrlState(str, Enum):
    """Lifecycle of one frontier entry."""

    QUEUED = "queued"
    FETCHING = "fetching"
    FETCHED = "fetched"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Image:
    src: str
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    is_lazy: bool = False

    @property
    def has_alt(self) -> bool:
        return bool(self.alt and self.alt.strip())


@dataclass(frozen=True)
class Link:
    href: str
    is_internal: bool
    anchor_text: str = ""
    is_nofollow: bool = False


@dataclass(frozen=True)
class CrawledPage:
    """Structural signals extracted from one fetched HTML page."""

    url: str
    status_code: int
    title: Optional[str] = None
    meta_description: Optional[str] = None
    h1: tuple[str, ...] = ()
    headings: tuple[Heading, ...] = ()
    images: tuple[Image, ...] = ()
    links: tuple[Link, ...] = ()
    schema_types: tuple[str, ...] = ()
    word_count: int = 0
    load_time_ms: int = 0
    canonical_url: Optional[str] = None
    robots_directive: Optional[str] = None
    content_type: str = "text/html"
    html_size: int = 0
    depth: int = 0
    og_tags: tuple[tuple[str, str], ...] = field(default=(), metadata=MAPPING_FIELD)
    meta_keywords: Optional[str] = None
    lang: Optional[str] = None

    @property
    def internal_links(self) -> tuple[Link, ...]:
        return tuple(link for link in self.links if link.is_internal)

    @property
    def external_links(self) -> tuple[Link, ...]:
        return tuple(link for link in self.links if not link.is_internal)

    def og(self, name: str) -> Optional[str]:
        """Return the value of Open Graph property *name* (e.g. ``og:title``)."""
        for key, value in self.og_tags:
            if key == name:
                return value
        return None

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)


@dataclass(frozen=True)
class CrawlError:
    url: str
    reason: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class CrawlProgress:
    """Snapshot handed to the progress callback after each frontier item."""

    current_url: str
    state: UrlState
    crawled_pages: int
    errors: int
    total_pages: int
    queued: int


@dataclass(frozen=True)
class CrawlResult:
    """Outcome of one crawl run.

    ``total_pages`` is the number of distinct URLs discovered (the frontier
    size), ``crawled_pages`` the number fetched successfully. The crawler
    guarantees ``len(pages) == crawled_pages`` and
    ``crawled_pages + len(errors) <= total_pages``.
    """

    root_url: str
    pages: tuple[CrawledPage, ...] = ()
    total_pages: int = 0
    crawled_pages: int = 0
    errors: tuple[CrawlError, ...] = ()
    duration_ms: int = 0
    status: CrawlStatus = CrawlStatus.COMPLETED
    started_at: str = ""
    completed_at: str = ""
    sitemap_urls: int = 0
    robots_found: bool = False

    def to_dict(self) -> dict[str, Any]:
        return make_serialisable(self)
