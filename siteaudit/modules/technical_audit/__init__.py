"""Technical SEO audit module: crawl, audit and auto-fix."""

from siteaudit.modules.technical_audit.crawler import SiteCrawler, CrawlState
from siteaudit.modules.technical_audit.auditor import AuditEngine, AuditThresholds
from siteaudit.modules.technical_audit.auto_fix import AutoFixEngine
from siteaudit.modules.technical_audit.extractor import PageExtractor
from siteaudit.modules.technical_audit.fetcher import PageFetcher
from siteaudit.modules.technical_audit.robots import RobotsPolicy
from siteaudit.modules.technical_audit.sitemap import SitemapParser

__all__ = [
    "SiteCrawler",
    "CrawlState",
    "AuditEngine",
    "AuditThresholds",
    "AutoFixEngine",
    "PageExtractor",
    "PageFetcher",
    "RobotsPolicy",
    "SitemapParser",
]
