"""siteaudit: crawl a site, audit its technical SEO and suggest fixes.

Usage::

    import asyncio
    from siteaudit import CrawlConfig, crawl, audit, generate_fixes

    result = asyncio.run(crawl("https://example.com", CrawlConfig(max_pages=20)))
    report = audit(result)
    fixes = generate_fixes(report, result.pages)
"""

from siteaudit.exceptions import SiteAuditError, CrawlConfigError, FetchError
from siteaudit.models import CrawlConfig, CrawlResult, AuditResult
from siteaudit.modules.technical_audit.crawler import crawl
from siteaudit.modules.technical_audit.auditor import audit
from siteaudit.modules.technical_audit.auto_fix import (
    generate_fixes,
    generate_bulk_fixes,
    generate_internal_link_suggestions,
    generate_content_suggestions,
)

__version__ = "1.0.0"

__all__ = [
    "SiteAuditError",
    "CrawlConfigError",
    "FetchError",
    "CrawlConfig",
    "CrawlResult",
    "AuditResult",
    "crawl",
    "audit",
    "generate_fixes",
    "generate_bulk_fixes",
    "generate_internal_link_suggestions",
    "generate_content_suggestions",
]
