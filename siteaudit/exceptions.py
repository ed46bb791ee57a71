"""Exception hierarchy for the site audit pipeline."""

from typing import Optional


class SiteAuditError(Exception):
    """Base class for every error raised by siteaudit."""


class CrawlConfigError(SiteAuditError, ValueError):
    """Invalid crawl input (root URL or budgets), raised before any fetch."""


class FetchError(SiteAuditError):
    """A single fetch failed at the network level (DNS, timeout, redirects)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code
