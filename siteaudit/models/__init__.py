"""Immutable result types passed between crawl, audit and fix stages."""

from siteaudit.models.crawl import (
    CrawlConfig,
    CrawlStatus,
    UrlState,
    Heading,
    Image,
    Link,
    CrawledPage,
    CrawlError,
    CrawlProgress,
    CrawlResult,
)
from siteaudit.models.audit import (
    Severity,
    IssueCategory,
    IssueType,
    IssueRef,
    AuditIssue,
    AuditSummary,
    PageScore,
    AuditResult,
)
from siteaudit.models.fixes import (
    Priority,
    FixSuggestion,
    InternalLinkSuggestion,
    ContentSuggestion,
    BulkFix,
)

__all__ = [
    "CrawlConfig",
    "CrawlStatus",
    "UrlState",
    "Heading",
    "Image",
    "Link",
    "CrawledPage",
    "CrawlError",
    "CrawlProgress",
    "CrawlResult",
    "Severity",
    "IssueCategory",
    "IssueType",
    "IssueRef",
    "AuditIssue",
    "AuditSummary",
    "PageScore",
    "AuditResult",
    "Priority",
    "FixSuggestion",
    "InternalLinkSuggestion",
    "ContentSuggestion",
    "BulkFix",
]
